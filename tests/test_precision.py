"""
Tests for integer minor-unit precision — no floating point anywhere.

These tests verify:
  - All amounts are integers in responses
  - Values up to the storable maximum survive a round trip through the database
  - Many small captures sum exactly
  - The exponent is carried through unchanged
"""

from factories import action_body, authorize_body


class TestMinorUnitPrecision:
    """Amounts are exact integers from request to database to response."""

    async def test_all_amounts_are_integers(self, client):
        txn = (await client.post("/authorize", json=authorize_body(1050))).json()
        for field in ("amount", "authorized_amount", "captured_amount", "refunded_amount"):
            assert isinstance(txn[field]["minor_units"], int)
            assert isinstance(txn[field]["exponent"], int)

    async def test_largest_storable_amount(self, client):
        """2^63 - 1 minor units is authorized and captured without loss."""
        largest = 2**63 - 1
        txn = (await client.post("/authorize", json=authorize_body(largest))).json()
        assert txn["authorized_amount"]["minor_units"] == largest

        response = await client.post(
            "/capture", json=action_body(txn["authorization_id"], largest)
        )
        assert response.status_code == 200
        assert response.json()["captured_amount"]["minor_units"] == largest

    async def test_many_small_captures_sum_exactly(self, client):
        """Fifty captures of 1 minor unit total exactly 50."""
        txn = (await client.post("/authorize", json=authorize_body(50))).json()
        auth_id = txn["authorization_id"]

        for _ in range(50):
            response = await client.post("/capture", json=action_body(auth_id, 1))
            assert response.status_code == 200

        assert response.json()["captured_amount"]["minor_units"] == 50
        response = await client.post("/capture", json=action_body(auth_id, 1))
        assert response.status_code == 422

    async def test_exponent_carried_through(self, client):
        """A zero-decimal currency keeps exponent 0 on every derived total."""
        body = authorize_body(amount={"minor_units": 5000, "currency": "JPY", "exponent": 0})
        txn = (await client.post("/authorize", json=body)).json()

        response = await client.post(
            "/capture",
            json=action_body(
                txn["authorization_id"],
                amount={"minor_units": 2000, "currency": "JPY", "exponent": 0},
            ),
        )
        data = response.json()
        assert data["captured_amount"] == {"minor_units": 2000, "currency": "JPY", "exponent": 0}
        assert data["refunded_amount"] == {"minor_units": 0, "currency": "JPY", "exponent": 0}
