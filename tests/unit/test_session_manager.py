"""
Unit tests for the request-scoped session manager

Most tests drive the manager against a mocked store; the persistence tests
use in-memory and SQLite-backed stores across several simulated requests.
"""

import random
from unittest.mock import Mock, patch

import pytest

from httpsession.core.config import Settings
from httpsession.core.exceptions import SessionStateError, StorageError, StoreConnectionError
from httpsession.stores import InMemorySessionStore, RelationalSessionStore, SessionStore
from httpsession.web.session import SessionManager, SessionState

pytestmark = pytest.mark.unit


def mock_store(payload=""):
    store = Mock(spec=SessionStore)
    store.read.return_value = payload
    store.gc.return_value = 0
    return store


def manager_for(store, **kwargs):
    kwargs.setdefault("gc_probability", 0)
    return SessionManager("abc123", lambda: store, **kwargs)


@pytest.fixture
def shared_records():
    return {}


@pytest.fixture
def memory_factory(shared_records, clock):
    return lambda: InMemorySessionStore(records=shared_records, clock=clock)


@pytest.fixture
def stored_alice(memory_factory):
    """A stored session for abc123 holding one attribute"""
    with SessionManager("abc123", memory_factory, gc_probability=0) as manager:
        manager.set_attribute("user", "alice")


class TestLazyInitialization:
    """Test that the store is only touched when attributes are used"""

    def test_store_is_not_created_before_first_access(self):
        """Test constructing a manager creates no store"""
        factory = Mock()
        manager = SessionManager("abc123", factory)

        assert manager.state is SessionState.UNINITIALIZED
        factory.assert_not_called()

    def test_first_access_opens_and_reads_store(self):
        """Test the first attribute read opens the store and loads the record"""
        store = mock_store('{"user":"alice"}')
        manager = manager_for(store)

        assert manager.get_attribute("user") == "alice"
        assert manager.state is SessionState.ACTIVE
        store.open.assert_called_once_with()
        store.read.assert_called_once_with("abc123")

    def test_store_is_created_once(self):
        """Test repeated attribute access reuses one store"""
        factory = Mock(return_value=mock_store())
        manager = SessionManager("abc123", factory, gc_probability=0)

        manager.set_attribute("a", 1)
        manager.get_attribute("a")
        manager.remove_attribute("a")

        factory.assert_called_once_with()

    def test_attribute_access_does_no_store_io(self):
        """Test attribute changes stay in memory until close"""
        store = mock_store()
        manager = manager_for(store)
        manager.open()

        manager.set_attribute("count", 1)
        manager.get_attribute("count")
        manager.remove_attribute("count")

        store.write.assert_not_called()
        assert store.read.call_count == 1

    def test_closing_untouched_session_skips_store(self):
        """Test closing a never-used session creates no store"""
        factory = Mock()
        manager = SessionManager("abc123", factory)

        manager.close()

        factory.assert_not_called()
        assert manager.state is SessionState.CLOSED

    def test_empty_session_id_is_rejected(self):
        """Test an empty id is refused at construction"""
        with pytest.raises(ValueError):
            SessionManager("", Mock())


class TestAttributes:
    """Test attribute access on an active session"""

    def test_get_missing_attribute_returns_default(self):
        """Test missing attributes fall back to the default"""
        manager = manager_for(mock_store())

        assert manager.get_attribute("missing") is None
        assert manager.get_attribute("missing", 0) == 0

    def test_set_get_remove(self):
        """Test setting, reading and removing an attribute"""
        manager = manager_for(mock_store())

        manager.set_attribute("cart", ["book"])
        assert manager.get_attribute("cart") == ["book"]
        assert "cart" in manager
        assert len(manager) == 1

        manager.remove_attribute("cart")
        assert "cart" not in manager
        assert manager.get_attribute_names() == []

    def test_remove_missing_attribute_is_noop(self):
        """Test removing an unknown attribute does not raise"""
        manager = manager_for(mock_store())

        manager.remove_attribute("missing")

    def test_non_string_attribute_name_is_rejected(self):
        """Test names that would not survive storage are refused"""
        store = mock_store()
        manager = manager_for(store)

        with pytest.raises(TypeError):
            manager.set_attribute(1, "x")

        manager.close()
        store.write.assert_not_called()

    def test_is_new_without_stored_record(self):
        """Test a session without a stored record is new"""
        assert manager_for(mock_store("")).is_new is True

    def test_is_not_new_with_stored_record(self):
        """Test a session with a stored record is not new"""
        assert manager_for(mock_store('{"a":1}')).is_new is False


class TestClose:
    """Test writing back and closing the session"""

    def test_close_writes_encoded_attributes_then_closes_store(self):
        """Test close writes the encoded attributes and closes the store"""
        store = mock_store()
        manager = manager_for(store)
        manager.set_attribute("count", 1)

        manager.close()

        store.write.assert_called_once_with("abc123", '{"count":1}')
        store.close.assert_called_once_with()
        assert manager.state is SessionState.CLOSED

    def test_close_runs_exactly_once(self):
        """Test a second close does nothing"""
        store = mock_store()
        manager = manager_for(store)
        manager.set_attribute("count", 1)

        manager.close()
        manager.close()

        assert store.write.call_count == 1
        assert store.close.call_count == 1

    def test_context_manager_flushes_on_error(self):
        """Test attributes are written when the handler raises"""
        store = mock_store()

        with pytest.raises(RuntimeError):
            with manager_for(store) as manager:
                manager.set_attribute("step", "before-error")
                raise RuntimeError("handler failed")

        store.write.assert_called_once_with("abc123", '{"step":"before-error"}')
        store.close.assert_called_once_with()

    def test_store_is_closed_when_write_fails(self):
        """Test the store is released even when the final write fails"""
        store = mock_store()
        store.write.side_effect = StorageError("disk full", operation="write")
        manager = manager_for(store)
        manager.set_attribute("count", 1)

        with pytest.raises(StorageError):
            manager.close()

        store.close.assert_called_once_with()

    def test_attribute_access_after_close_raises(self):
        """Test a closed session refuses attribute access"""
        manager = manager_for(mock_store())
        manager.open()
        manager.close()

        with pytest.raises(SessionStateError):
            manager.get_attribute("count")

    def test_flush_writes_without_closing(self):
        """Test flush persists attributes and keeps the session active"""
        store = mock_store()
        manager = manager_for(store)
        manager.set_attribute("count", 1)

        manager.flush()

        store.write.assert_called_once_with("abc123", '{"count":1}')
        store.close.assert_not_called()
        assert manager.state is SessionState.ACTIVE

    def test_failed_flush_leaves_stored_session_unchanged(
        self, memory_factory, shared_records, stored_alice
    ):
        """Test a failing flush neither clears nor replaces the stored record"""
        manager = SessionManager("abc123", memory_factory, gc_probability=0)
        manager.set_attribute("user", "bob")

        with patch.object(
            InMemorySessionStore, "write", side_effect=StorageError("disk full", operation="write")
        ):
            with pytest.raises(StorageError):
                manager.flush()

        assert shared_records["abc123"][0] == '{"user":"alice"}'
        assert manager.state is SessionState.ACTIVE
        assert manager.get_attribute("user") == "bob"


class TestInvalidate:
    """Test destroying a session"""

    def test_invalidate_destroys_record_and_drops_id(self):
        """Test invalidate removes the record and forgets the id"""
        store = mock_store('{"user":"alice"}')
        manager = manager_for(store)

        manager.invalidate()

        store.destroy.assert_called_once_with("abc123")
        assert manager.id is None
        assert manager.state is SessionState.INVALIDATED

    def test_attribute_access_after_invalidate_raises(self):
        """Test an invalidated session refuses attribute access"""
        manager = manager_for(mock_store())
        manager.invalidate()

        with pytest.raises(SessionStateError):
            manager.set_attribute("user", "bob")

    def test_close_after_invalidate_does_not_write(self):
        """Test closing an invalidated session writes nothing back"""
        store = mock_store()
        manager = manager_for(store)
        manager.set_attribute("user", "alice")
        manager.invalidate()

        manager.close()

        store.write.assert_not_called()
        store.close.assert_called_once_with()

    def test_failed_destroy_keeps_session_active(self):
        """Test a failing destroy leaves id, state and attributes untouched"""
        store = mock_store('{"user":"alice"}')
        store.destroy.side_effect = StorageError("database is locked", operation="destroy")
        manager = manager_for(store)

        with pytest.raises(StorageError):
            manager.invalidate()

        assert manager.id == "abc123"
        assert manager.state is SessionState.ACTIVE
        assert manager.get_attribute("user") == "alice"

    def test_failed_destroy_does_not_empty_stored_session(
        self, memory_factory, shared_records, stored_alice
    ):
        """Test the write on close after a failing destroy keeps the real attributes"""
        with patch.object(
            InMemorySessionStore,
            "destroy",
            side_effect=StorageError("database is locked", operation="destroy"),
        ):
            with pytest.raises(StorageError):
                with SessionManager("abc123", memory_factory, gc_probability=0) as manager:
                    manager.invalidate()

        assert shared_records["abc123"][0] == '{"user":"alice"}'


class TestInitializationErrors:
    """Test that store failures never start an empty session"""

    def test_connection_error_aborts_initialization(self):
        """Test a connection failure propagates and releases the store"""
        store = mock_store()
        store.open.side_effect = StoreConnectionError("refused", backend="relational")
        manager = manager_for(store)

        with pytest.raises(StoreConnectionError):
            manager.get_attribute("user")

        assert manager.state is SessionState.UNINITIALIZED
        store.close.assert_called_once_with()

    def test_read_error_is_not_an_empty_session(self):
        """Test a read failure propagates instead of yielding an empty session"""
        store = mock_store()
        store.read.side_effect = StorageError("no such table: web_session", operation="read")
        manager = manager_for(store)

        with pytest.raises(StorageError):
            manager.open()

        store.close.assert_called_once_with()
        store.write.assert_not_called()

    def test_corrupt_payload_raises_storage_error(self):
        """Test an undecodable payload is reported as a storage error"""
        manager = manager_for(mock_store("not json"))

        with pytest.raises(StorageError):
            manager.get_attribute("user")


class TestGarbageCollectionSampling:
    """Test the sampled garbage collection on close"""

    def test_gc_runs_when_sampled(self):
        """Test gc runs with the configured lifetime when sampled"""
        store = mock_store()
        manager = SessionManager(
            "abc123", lambda: store, gc_probability=1, gc_divisor=1, gc_maxlifetime=600
        )
        manager.open()

        manager.close()

        store.gc.assert_called_once_with(600)

    def test_gc_never_runs_with_zero_probability(self):
        """Test a zero probability disables gc"""
        store = mock_store()
        manager = manager_for(store, gc_probability=0)
        manager.open()

        manager.close()

        store.gc.assert_not_called()

    def test_gc_sampling_uses_divisor(self):
        """Test the random draw spans 1 to the divisor"""
        rng = Mock(spec=random.Random)
        rng.randint.return_value = 2
        store = mock_store()
        manager = SessionManager("abc123", lambda: store, gc_probability=1, gc_divisor=100, rng=rng)
        manager.open()

        manager.close()

        rng.randint.assert_called_once_with(1, 100)
        store.gc.assert_not_called()

    def test_invalid_divisor_is_rejected(self):
        """Test a divisor below one is refused"""
        with pytest.raises(ValueError):
            SessionManager("abc123", Mock(), gc_divisor=0)


class TestPersistenceAcrossRequests:
    """Test sessions carried over several simulated requests"""

    def test_attributes_survive_to_next_request(self, memory_factory):
        """Test attributes written by one request are read by the next"""
        with SessionManager("abc123", memory_factory, gc_probability=0) as first:
            first.set_attribute("count", 1)

        with SessionManager("abc123", memory_factory, gc_probability=0) as second:
            assert second.is_new is False
            assert second.get_attribute("count") == 1
            second.set_attribute("count", 2)

        with SessionManager("abc123", memory_factory, gc_probability=0) as third:
            assert third.get_attribute("count") == 2

    def test_invalidated_session_is_gone_next_request(self, memory_factory):
        """Test an invalidated session starts empty on the next request"""
        with SessionManager("abc123", memory_factory, gc_probability=0) as first:
            first.set_attribute("user", "alice")

        with SessionManager("abc123", memory_factory, gc_probability=0) as second:
            second.invalidate()

        with SessionManager("abc123", memory_factory, gc_probability=0) as third:
            assert third.is_new is True
            assert third.get_attribute("user") is None

    def test_from_settings_uses_configured_backend(self, sqlite_profile):
        """Test from_settings stores through the configured relational backend"""
        settings = Settings(
            session_store_backend="relational",
            connection_profiles={"default": sqlite_profile},
            session_gc_probability=0,
        )

        with SessionManager.from_settings("abc123", settings) as manager:
            manager.set_attribute("count", 1)

        with RelationalSessionStore(profile=sqlite_profile) as store:
            assert store.read("abc123") == '{"count":1}'
