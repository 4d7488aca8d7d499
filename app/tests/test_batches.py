"""
Tests for batch creation and the batch status state machine.
"""
import threading

import pytest

from app.core.errors import BatchNotFound, InvalidMedicineId, NameNotSet, NotAuthorized
from app.db.models import BatchStatus, MAX_LEDGER_ID
from app.services.registry import MedicineRegistry
from app.tests.conftest import ADMIN, ACME, GLOBEX, REFEREE, STRANGER, ledger_state


class TestCreateBatch:

    def test_first_batch_gets_id_one(self, registry: MedicineRegistry, acme):
        assert registry.create_batch(ACME, ACME, [10, 20]) == 1

    def test_batch_record(self, registry: MedicineRegistry, acme):
        batch_id = registry.create_batch(ACME, ACME, [10, 20, 30])

        batch = registry.get_batch(batch_id)
        assert batch.id == batch_id
        assert batch.manufacturer == ACME
        assert batch.status == BatchStatus.ENABLED
        assert batch.created_at is not None
        assert registry.medicines_of(batch_id) == [10, 20, 30]
        assert registry.batches_of(ACME) == [batch_id]

    def test_ids_are_strictly_increasing(self, registry: MedicineRegistry, acme, referee):
        registry.bind_name(ADMIN, GLOBEX, "Globex")
        ids = []
        for i in range(1, 6):
            owner = ACME if i % 2 else GLOBEX
            ids.append(registry.create_batch(owner, owner, [i]))
            # disabling a batch never frees its id
            registry.set_status(REFEREE, ids[-1], BatchStatus.DISABLED)

        assert ids == [1, 2, 3, 4, 5]
        assert registry.batches_of(ACME) == [1, 3, 5]
        assert registry.batches_of(GLOBEX) == [2, 4]

    def test_failed_creation_does_not_consume_an_id(self, registry: MedicineRegistry, acme):
        assert registry.create_batch(ACME, ACME, [1]) == 1
        with pytest.raises(InvalidMedicineId):
            registry.create_batch(ACME, ACME, [2, 0])
        assert registry.create_batch(ACME, ACME, [2]) == 2

    def test_admin_can_create_for_manufacturer(self, registry: MedicineRegistry, acme):
        batch_id = registry.create_batch(ADMIN, ACME, [7])
        assert registry.get_batch(batch_id).manufacturer == ACME

    def test_empty_batch_allowed(self, registry: MedicineRegistry, acme):
        batch_id = registry.create_batch(ACME, ACME, [])
        assert registry.medicines_of(batch_id) == []

    def test_medicine_order_preserved(self, registry: MedicineRegistry, acme):
        batch_id = registry.create_batch(ACME, ACME, [30, 10, 20])
        assert registry.medicines_of(batch_id) == [30, 10, 20]

    def test_repeated_medicine_id_in_one_batch(self, registry: MedicineRegistry, acme):
        batch_id = registry.create_batch(ACME, ACME, [10, 10])

        assert batch_id == 1
        assert registry.medicines_of(batch_id) == [10, 10]
        assert registry.index.batch_id_for(ACME, 10) == batch_id
        assert registry.is_invalid(ACME, 10) is False
        assert registry.is_invalid_by_name("Acme", 10) is False

    def test_largest_storable_medicine_id(self, registry: MedicineRegistry, acme):
        batch_id = registry.create_batch(ACME, ACME, [MAX_LEDGER_ID])

        assert registry.medicines_of(batch_id) == [MAX_LEDGER_ID]
        assert registry.is_invalid(ACME, MAX_LEDGER_ID) is False


class TestCreateBatchRejections:

    @pytest.mark.parametrize("medicine_ids", [[0], [10, 0, 20], [5, -1], [2**64], [10, MAX_LEDGER_ID + 1]])
    def test_invalid_medicine_id_is_atomic(self, registry: MedicineRegistry, acme, medicine_ids):
        registry.create_batch(ACME, ACME, [100])
        before = ledger_state(registry)

        with pytest.raises(InvalidMedicineId):
            registry.create_batch(ACME, ACME, medicine_ids)

        assert ledger_state(registry) == before
        assert registry.is_invalid(ACME, 10)

    def test_other_caller_not_authorized(self, registry: MedicineRegistry, acme):
        registry.bind_name(ADMIN, GLOBEX, "Globex")
        before = ledger_state(registry)

        with pytest.raises(NotAuthorized):
            registry.create_batch(GLOBEX, ACME, [1])
        with pytest.raises(NotAuthorized):
            registry.create_batch(STRANGER, ACME, [1])

        assert ledger_state(registry) == before

    def test_manufacturer_role_required(self, registry: MedicineRegistry):
        with pytest.raises(NotAuthorized):
            registry.create_batch(STRANGER, STRANGER, [1])
        with pytest.raises(NotAuthorized):
            registry.create_batch(ADMIN, STRANGER, [1])

    def test_unbound_manufacturer_fails_name_not_set(self, registry: MedicineRegistry):
        registry.grant_manufacturer(ADMIN, GLOBEX)
        before = ledger_state(registry)

        with pytest.raises(NameNotSet):
            registry.create_batch(GLOBEX, GLOBEX, [1])

        assert ledger_state(registry) == before


class TestSetStatus:

    @pytest.fixture
    def batch_id(self, registry: MedicineRegistry, acme, referee):
        return registry.create_batch(ACME, ACME, [10, 20])

    @pytest.mark.parametrize("path", [
        [BatchStatus.DISABLED, BatchStatus.ENABLED],
        [BatchStatus.IN_REVISION, BatchStatus.DISABLED, BatchStatus.IN_REVISION],
        [BatchStatus.ENABLED],
        [BatchStatus.DISABLED, BatchStatus.DISABLED],
    ])
    def test_any_transition_allowed(self, registry: MedicineRegistry, batch_id, path):
        for status in path:
            registry.set_status(REFEREE, batch_id, status)
            assert registry.get_batch(batch_id).status == status

    def test_referee_role_required(self, registry: MedicineRegistry, batch_id):
        before = ledger_state(registry)
        for caller in (ADMIN, ACME, STRANGER):
            with pytest.raises(NotAuthorized):
                registry.set_status(caller, batch_id, BatchStatus.DISABLED)
        assert ledger_state(registry) == before

    @pytest.mark.parametrize("missing", [0, 2, 999, 2**64])
    def test_unknown_batch(self, registry: MedicineRegistry, batch_id, missing):
        with pytest.raises(BatchNotFound):
            registry.set_status(REFEREE, missing, BatchStatus.DISABLED)

    def test_get_unknown_batch(self, registry: MedicineRegistry):
        with pytest.raises(BatchNotFound):
            registry.get_batch(1)
        with pytest.raises(BatchNotFound):
            registry.get_batch(2**64)
        assert registry.medicines_of(2**64) == []


class TestSetStatusByName:

    def test_disables_resolved_batch(self, registry: MedicineRegistry, acme, referee):
        registry.create_batch(ACME, ACME, [1])
        batch_id = registry.create_batch(ACME, ACME, [10, 20])

        assert registry.set_status_by_name(REFEREE, "Acme", 20) == batch_id

        assert registry.get_batch(batch_id).status == BatchStatus.DISABLED
        assert registry.is_invalid(ACME, 10)
        assert not registry.is_invalid(ACME, 1)

    def test_disables_even_from_revision(self, registry: MedicineRegistry, acme, referee):
        batch_id = registry.create_batch(ACME, ACME, [10])
        registry.set_status(REFEREE, batch_id, BatchStatus.IN_REVISION)

        registry.set_status_by_name(REFEREE, "Acme", 10)

        assert registry.get_batch(batch_id).status == BatchStatus.DISABLED

    def test_unresolved_medicine(self, registry: MedicineRegistry, acme, referee):
        registry.create_batch(ACME, ACME, [10])
        before = ledger_state(registry)

        with pytest.raises(BatchNotFound):
            registry.set_status_by_name(REFEREE, "Acme", 11)
        with pytest.raises(BatchNotFound):
            registry.set_status_by_name(REFEREE, "Globex", 10)
        with pytest.raises(BatchNotFound):
            registry.set_status_by_name(REFEREE, "Acme", 2**64)

        assert ledger_state(registry) == before

    def test_referee_role_required(self, registry: MedicineRegistry, acme):
        registry.create_batch(ACME, ACME, [10])
        with pytest.raises(NotAuthorized):
            registry.set_status_by_name(ADMIN, "Acme", 10)
        assert not registry.is_invalid(ACME, 10)


class TestConcurrentCreation:

    def test_parallel_creates_get_distinct_sequential_ids(self, registry: MedicineRegistry, acme):
        results = []
        errors = []

        def worker(n):
            try:
                results.append(registry.create_batch(ACME, ACME, [n]))
            except Exception as e:  # pragma: no cover - surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 11)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(results) == list(range(1, 11))
        for batch_id in results:
            medicine_id = registry.medicines_of(batch_id)[0]
            assert registry.index.batch_id_for(ACME, medicine_id) == batch_id
            assert registry.index.batch_id_for_name("Acme", medicine_id) == batch_id
