"""Customer directory: customer records and their lookups."""

import copy
from collections import Counter

import structlog

from .database import Database
from .errors import RecordParseError, StorageError
from .models import Customer

logger = structlog.get_logger(__name__)


class CustomerDirectory:
    """Owns the customer collection."""

    def __init__(self, database: Database):
        self.database = database
        self._customers: list[Customer] = []
        self._next_id = 1
        self._load()

    def _load(self) -> None:
        self._customers = []
        for line in self.database.load_customers():
            try:
                customer = Customer.deserialize(line)
            except RecordParseError as e:
                logger.warning("customer_record_skipped", error=str(e))
                continue
            if customer.customer_id <= 0:
                logger.warning("customer_record_skipped", line=line, error="missing fields")
                continue
            self._customers.append(customer)
            self._next_id = max(self._next_id, customer.customer_id + 1)
        logger.info("customers_loaded", count=len(self._customers))

    def _save(self) -> bool:
        try:
            self.database.save_customers([c.serialize() for c in self._customers])
        except StorageError as e:
            logger.error("customers_save_failed", error=str(e))
            return False
        return True

    def _find(self, customer_id: int) -> Customer | None:
        for customer in self._customers:
            if customer.customer_id == customer_id:
                return customer
        return None

    def find_by_id(self, customer_id: int) -> Customer | None:
        """Return a copy of the customer, or None."""
        customer = self._find(customer_id)
        return copy.copy(customer) if customer is not None else None

    def get_customer(self, customer_id: int) -> Customer | None:
        return self.find_by_id(customer_id)

    def exists(self, customer_id: int) -> bool:
        return self._find(customer_id) is not None

    # --- CRUD ---

    def add_customer(self, customer: Customer) -> Customer | None:
        """
        Validate and store a new customer under the next free ID.

        Returns:
            A copy of the stored customer, or None if validation failed.
        """
        candidate = copy.copy(customer)
        candidate.customer_id = 0
        if not self.validate_customer(candidate):
            return None

        candidate.customer_id = self._next_id
        self._next_id += 1
        self._customers.append(candidate)
        self._save()
        logger.info("customer_added", customer_id=candidate.customer_id, name=candidate.name)
        return copy.copy(candidate)

    def get_all_customers(self) -> list[Customer]:
        return [copy.copy(c) for c in self._customers]

    def get_active_customers(self) -> list[Customer]:
        return [copy.copy(c) for c in self._customers if c.is_active]

    def update_customer(self, customer: Customer) -> bool:
        for i, existing in enumerate(self._customers):
            if existing.customer_id == customer.customer_id:
                if not self.validate_customer(customer):
                    return False
                self._customers[i] = copy.copy(customer)
                self._save()
                logger.info("customer_updated", customer_id=customer.customer_id)
                return True
        return False

    def delete_customer(self, customer_id: int) -> bool:
        """Remove a customer; existing orders keep their snapshot."""
        customer = self._find(customer_id)
        if customer is None:
            return False
        self._customers.remove(customer)
        self._save()
        logger.info("customer_deleted", customer_id=customer_id, name=customer.name)
        return True

    def _set_active(self, customer_id: int, active: bool) -> bool:
        customer = self._find(customer_id)
        if customer is None:
            return False
        customer.is_active = active
        self._save()
        logger.info("customer_activation_changed", customer_id=customer_id, active=active)
        return True

    def deactivate_customer(self, customer_id: int) -> bool:
        return self._set_active(customer_id, False)

    def activate_customer(self, customer_id: int) -> bool:
        return self._set_active(customer_id, True)

    # --- Search ---

    def search_by_name(self, name: str) -> list[Customer]:
        needle = name.lower()
        return [copy.copy(c) for c in self._customers if needle in c.name.lower()]

    def search_by_email(self, email: str) -> list[Customer]:
        needle = email.lower()
        return [copy.copy(c) for c in self._customers if needle in c.email.lower()]

    def search_by_phone(self, phone: str) -> list[Customer]:
        return [copy.copy(c) for c in self._customers if phone in c.phone]

    def get_customers_by_city(self, city: str) -> list[Customer]:
        wanted = city.lower()
        return [copy.copy(c) for c in self._customers if c.city.lower() == wanted]

    def get_customers_by_country(self, country: str) -> list[Customer]:
        wanted = country.lower()
        return [copy.copy(c) for c in self._customers if c.country.lower() == wanted]

    # --- Validation ---

    def is_email_unique(self, email: str, exclude_customer_id: int = -1) -> bool:
        wanted = email.lower()
        return not any(
            c.customer_id != exclude_customer_id and c.email.lower() == wanted
            for c in self._customers
        )

    def is_phone_unique(self, phone: str, exclude_customer_id: int = -1) -> bool:
        return not any(
            c.customer_id != exclude_customer_id and c.phone == phone
            for c in self._customers
        )

    def validate_customer(self, customer: Customer) -> bool:
        if not customer.is_valid():
            logger.warning("customer_invalid", name=customer.name)
            return False
        if not self.is_email_unique(customer.email, customer.customer_id):
            logger.warning("customer_email_taken", email=customer.email)
            return False
        if not self.is_phone_unique(customer.phone, customer.customer_id):
            logger.warning("customer_phone_taken", phone=customer.phone)
            return False
        return True

    # --- Statistics ---

    def get_total_customers(self) -> int:
        return len(self._customers)

    def get_active_customers_count(self) -> int:
        return sum(1 for c in self._customers if c.is_active)

    def get_inactive_customers_count(self) -> int:
        return self.get_total_customers() - self.get_active_customers_count()

    def get_top_cities(self, limit: int = 5) -> list[str]:
        counts = Counter(c.city for c in self._customers if c.is_active)
        return [city for city, _ in counts.most_common(limit)]

    def get_top_countries(self, limit: int = 5) -> list[str]:
        counts = Counter(c.country for c in self._customers if c.is_active)
        return [country for country, _ in counts.most_common(limit)]
