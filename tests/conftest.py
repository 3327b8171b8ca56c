"""Pytest bootstrap configuration.

Point settings at throwaway backends before application modules are
imported, and wire the in-memory fakes from ``fakes`` into fixtures.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")

import pytest  # noqa: E402

from application.commands import CommandHandler  # noqa: E402
from application.facades import BookingFacade, PaymentFacade  # noqa: E402
from fakes import (  # noqa: E402
    InMemoryUnitOfWork,
    MemoryStore,
    RecordingInvoiceGenerator,
    RecordingNotifier,
    StubProcessor,
    StubResolver,
)


@pytest.fixture
def processor() -> StubProcessor:
    return StubProcessor()


@pytest.fixture
def resolver(processor) -> StubResolver:
    return StubResolver(processor)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def uow_factory(store):
    def factory(*, readonly: bool = False) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store, readonly=readonly)
    return factory


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def invoices() -> RecordingInvoiceGenerator:
    return RecordingInvoiceGenerator()


@pytest.fixture
def payment_facade(resolver, uow_factory, invoices, notifier) -> PaymentFacade:
    return PaymentFacade(processors=resolver, uow_factory=uow_factory, invoice_generator=invoices, notifier=notifier)


@pytest.fixture
def booking_facade(uow_factory, payment_facade, notifier) -> BookingFacade:
    return BookingFacade(uow_factory=uow_factory, payment_facade=payment_facade, notifier=notifier)


@pytest.fixture
def handler() -> CommandHandler:
    return CommandHandler(max_size=100)
