import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def billing_bed():
    from billing.domain import billing

    bed = DomainFixture(billing)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(billing_bed):
    with billing_bed.domain_context():
        yield

        from protean import current_domain

        # Every test starts from empty repositories
        for _, provider in current_domain.providers.items():
            provider._data_reset()


@pytest.fixture()
def fake_gateway():
    """A fresh FakeGateway installed as the active gateway."""
    from billing.gateway import reset_gateway, set_gateway
    from billing.gateway.fake_adapter import FakeGateway

    gateway = FakeGateway()
    set_gateway(gateway)
    yield gateway
    reset_gateway()
