import pytest
from fastapi.testclient import TestClient

from shielded_pool.api.server import app
from shielded_pool.bridge.messages import encode_bridge_payload
from shielded_pool.core.builder import TransactionBuilder
from shielded_pool.core.models import parse_units
from shielded_pool.core.note import Note
from shielded_pool.crypto.field import to_fixed_hex
from shielded_pool.crypto.keypair import Keypair


@pytest.fixture
def client(monkeypatch):
    # No verification keys configured: the server falls back to the simulated proof system
    monkeypatch.delenv("VERIFIER2_VKEY", raising=False)
    monkeypatch.delenv("VERIFIER16_VKEY", raising=False)
    monkeypatch.delenv("BRIDGE_API_KEY", raising=False)
    with TestClient(app) as c:
        yield c


def _builder(client):
    return TransactionBuilder(client.app.state.pool, client.app.state.prover)


def _post_tx(client, tx):
    return client.post("/pool/transact", json={"transaction": tx.model_dump(mode="json")})


def _post_bridge(client, tx, amount, token=None, key=None):
    state = client.app.state
    return client.post(
        "/bridge/deposit",
        json={
            "token": token or state.pool.config.token,
            "amount": str(amount),
            "data": "0x" + encode_bridge_payload(tx).hex(),
        },
        headers={"X-Bridge-Key": state.bridge_key if key is None else key},
    )


def _deliver(client, amount):
    """Move `amount` from the bridge account into pool custody, as the bridge does before calling back."""
    state = client.app.state
    state.ledger.mint(state.transport.address, amount)
    state.ledger.transfer(state.transport.address, state.pool.config.pool_address, amount)


def _deposit(client, amount):
    note = Note(amount, Keypair())
    _deliver(client, amount)
    response = _post_bridge(client, _builder(client).prepare_transaction(outputs=[note]), amount)
    assert response.status_code == 200
    note.index = response.json()["leaf_indices"][0]
    return note


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_pool_status(client):
    response = client.get("/pool")
    assert response.status_code == 200
    body = response.json()
    assert body["tree_height"] == 5
    assert body["next_index"] == 0
    assert body["custody"] == "0"
    assert body["root"] == to_fixed_hex(client.app.state.pool.current_root())


def test_transact_missing_transaction(client):
    response = client.post("/pool/transact", json={})
    assert response.status_code == 422


def test_transact_refuses_deposits(client):
    state = client.app.state
    state.ledger.mint("alice", parse_units("1"))
    tx = _builder(client).prepare_transaction(outputs=[Note(parse_units("0.08"))])

    # naming another account's funds in the body must not pull them
    response = client.post("/pool/transact", json={"transaction": tx.model_dump(mode="json"), "sender": "alice"})
    assert response.status_code == 403
    assert state.ledger.balance_of("alice") == parse_units("1")
    assert state.pool.custody() == 0
    assert state.pool.commitments() == []


def test_transfer_over_http(client):
    note = _deposit(client, parse_units("0.08"))
    tx = _builder(client).prepare_transaction(inputs=[note], outputs=[Note(parse_units("0.08"), note.keypair)])
    response = _post_tx(client, tx)
    assert response.status_code == 200
    assert response.json()["leaf_indices"] == [2, 3]
    assert client.get("/pool").json()["custody"] == str(parse_units("0.08"))


def test_double_spend_returns_409(client):
    note = _deposit(client, parse_units("0.08"))
    tx = _builder(client).prepare_transaction(
        inputs=[note], outputs=[Note(parse_units("0.03"), note.keypair)], recipient="bob",
    )
    assert _post_tx(client, tx).status_code == 200

    response = _post_tx(client, tx)
    assert response.status_code == 409
    assert response.json()["code"] == "DOUBLE_SPEND"


def test_withdrawal_below_minimum_returns_409(client):
    note = _deposit(client, parse_units("0.08"))
    tx = _builder(client).prepare_transaction(
        inputs=[note], outputs=[Note(parse_units("0.07"), note.keypair)], recipient="bob",
    )
    response = _post_tx(client, tx)
    assert response.status_code == 409
    assert response.json()["code"] == "AMOUNT_OUT_OF_RANGE"


def test_accumulator_full_returns_503(monkeypatch):
    monkeypatch.delenv("VERIFIER2_VKEY", raising=False)
    monkeypatch.delenv("VERIFIER16_VKEY", raising=False)
    monkeypatch.setenv("MERKLE_TREE_HEIGHT", "1")
    with TestClient(app) as client:
        note = _deposit(client, 1)
        tx = _builder(client).prepare_transaction(inputs=[note], outputs=[Note(1, note.keypair)])
        response = _post_tx(client, tx)
        assert response.status_code == 503
        assert response.json()["code"] == "ACCUMULATOR_FULL"


def test_commitments(client):
    note = _deposit(client, parse_units("0.08"))
    response = client.get("/pool/commitments")
    assert response.status_code == 200
    events = response.json()
    assert len(events) == 2
    assert events[0]["commitment"] == to_fixed_hex(note.commitment())
    assert events[0]["encrypted_output"].startswith("0x")

    assert len(client.get("/pool/commitments", params={"start": 1}).json()) == 1


def test_commitments_negative_start_returns_422(client):
    _deposit(client, parse_units("0.08"))
    response = client.get("/pool/commitments", params={"start": -1})
    assert response.status_code == 422


def test_nullifier_status(client):
    note = _deposit(client, parse_units("0.08"))
    nullifier = to_fixed_hex(note.nullifier())
    assert client.get(f"/pool/nullifiers/{nullifier}").json()["spent"] is False

    tx = _builder(client).prepare_transaction(
        inputs=[note], outputs=[Note(parse_units("0.03"), note.keypair)], recipient="bob",
    )
    _post_tx(client, tx)
    response = client.get(f"/pool/nullifiers/{nullifier}")
    assert response.json() == {"nullifier": nullifier, "spent": True}


def test_nullifier_bad_hex(client):
    response = client.get("/pool/nullifiers/0xnothex")
    assert response.status_code == 400


def test_bridge_deposit(client):
    state = client.app.state
    amount = parse_units("0.08")
    tx = _builder(client).prepare_transaction(outputs=[Note(amount)])
    _deliver(client, amount)

    response = _post_bridge(client, tx, amount)
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"
    assert state.pool.custody() == state.pool.last_balance == amount


@pytest.mark.parametrize("key", ["", "wrong-key"])
def test_bridge_deposit_requires_key(client, key):
    state = client.app.state
    amount = parse_units("0.08")
    tx = _builder(client).prepare_transaction(outputs=[Note(amount)])
    _deliver(client, amount)

    response = _post_bridge(client, tx, amount, key=key)
    assert response.status_code == 401
    assert state.pool.commitments() == []
    assert state.pool.custody() == amount


def test_bridge_key_from_environment(monkeypatch):
    monkeypatch.delenv("VERIFIER2_VKEY", raising=False)
    monkeypatch.delenv("VERIFIER16_VKEY", raising=False)
    monkeypatch.setenv("BRIDGE_API_KEY", "bridge-secret")
    with TestClient(app) as client:
        assert client.app.state.bridge_key == "bridge-secret"
        _deposit(client, parse_units("0.08"))


def test_bridge_under_delivery_returns_409(client):
    state = client.app.state
    tx = _builder(client).prepare_transaction(outputs=[Note(parse_units("0.08"))])
    _deliver(client, parse_units("0.05"))

    response = _post_bridge(client, tx, parse_units("0.08"))
    assert response.status_code == 409
    assert response.json()["code"] == "BRIDGE_AMOUNT_MISMATCH"
    assert state.ledger.balance_of(state.pool.config.rescue_address) == parse_units("0.05")
    assert state.pool.custody() == 0


def test_bridge_deposit_unsupported_token(client):
    tx = _builder(client).prepare_transaction(outputs=[Note(5)])
    response = _post_bridge(client, tx, 5, token="OTHER")
    assert response.status_code == 409
    assert response.json()["code"] == "UNSUPPORTED_TOKEN"
