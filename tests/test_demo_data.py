"""
Nexus Compliance - Demo Data Tests

Tests for demo portfolio generation: statuses, states, alert allocation.
"""

import random
import uuid

import pytest

from app.services.demo_data import (
    AlertGenerator,
    ClientGenerator,
    StateGenerator,
    TOTAL_CLIENTS,
    calculate_revenue_for_status,
    determine_status,
)


class TestStatusHelpers:

    def test_determine_status_standard(self):
        assert determine_status(100_000, 100_000) == "critical"
        assert determine_status(85_000, 100_000) == "warning"
        assert determine_status(50_000, 100_000) == "compliant"

    def test_zero_threshold_is_compliant(self):
        assert determine_status(1_000_000, 0) == "compliant"

    def test_unknown_strategy_falls_back_to_standard(self):
        assert determine_status(85_000, 100_000, "bogus") == "warning"

    def test_risk_tolerant_strategy(self):
        assert determine_status(110_000, 100_000, "risk-tolerant") == "warning"

    @pytest.mark.parametrize("status", ["compliant", "warning", "critical"])
    def test_revenue_round_trips_to_status(self, status):
        rng = random.Random(7)
        for _ in range(50):
            amount = calculate_revenue_for_status(status, 400_000, rng=rng)
            assert determine_status(amount, 400_000) == status

    def test_warning_revenue_stays_below_threshold(self):
        rng = random.Random(1)
        for _ in range(100):
            assert calculate_revenue_for_status("warning", 300_000, "aggressive", rng) < 300_000


class TestStateGenerator:

    def test_states_for_critical_client(self):
        generator = StateGenerator(rng=random.Random(3))
        result = generator.generate_states_for_client(
            uuid.uuid4(), uuid.uuid4(), "critical", ["CA", "NY", "TX", "FL", "IL"],
        )

        states = result["states"]
        codes = [s["state_code"] for s in states]
        assert len(codes) == len(set(codes))
        assert len(result["activities"]) == len(states)
        assert states[0]["state_code"] == "CA"
        assert states[0]["status"] == "compliant"

        for state in states:
            assert len(state["notes"]) <= 255
            if state["status"] == "critical":
                assert state["current_amount"] >= state["threshold_amount"]
                assert state["registration_required"] is True
            else:
                assert state["penalty_risk"] == 0

    def test_threshold_bands(self):
        generator = StateGenerator(rng=random.Random(5))
        assert 500_000 <= generator.determine_threshold_amount("CA") < 1_000_000
        assert 200_000 <= generator.determine_threshold_amount("FL") < 500_000
        assert 100_000 <= generator.determine_threshold_amount("WA") < 300_000

    def test_long_notes_truncated(self):
        note = StateGenerator.state_notes("warning", "XX" * 200, 80, 100)
        assert len(note) <= 255


class TestAlertGenerator:

    def _client(self):
        return {"id": uuid.uuid4(), "organization_id": uuid.uuid4(), "name": "Acme"}

    def _state(self, code, status, current=900, threshold=1000):
        return {
            "state_code": code,
            "state_name": code,
            "status": status,
            "current_amount": current,
            "threshold_amount": threshold,
            "excess_amount": max(0, current - threshold),
            "penalty_risk": 0,
        }

    def test_warning_state_promoted_when_no_critical(self):
        alerts = AlertGenerator().generate_alerts_for_client(
            self._client(),
            [self._state("CA", "warning"), self._state("NY", "warning")],
            {"high": 1, "medium": 1, "low": 0},
        )
        assert [a["priority"] for a in alerts] == ["high", "medium"]
        assert alerts[0]["state_code"] != alerts[1]["state_code"]

    def test_compliant_states_never_alerted(self):
        alerts = AlertGenerator().generate_alerts_for_client(
            self._client(),
            [self._state("CA", "compliant", current=100)],
            {"high": 1, "medium": 1, "low": 0},
        )
        assert alerts == []

    def test_monitoring_alerts_are_low(self):
        alerts = AlertGenerator().generate_alerts_for_client(
            self._client(), [], {"high": 0, "medium": 0, "low": 2},
        )
        assert len(alerts) == 2
        assert all(a["priority"] == "low" and a["state_code"] is None for a in alerts)


class TestPortfolioPlan:

    def test_plan_portfolio_shape(self):
        generator = ClientGenerator(db=None, rng=random.Random(11))
        portfolio = generator.plan_portfolio(uuid.uuid4(), ["ca", "NY", "TX", "FL", "IL", "ZZ"])

        assert len(portfolio) == TOTAL_CLIENTS
        risk_levels = [entry["client"]["risk_level"] for entry in portfolio]
        assert risk_levels.count("critical") == 2
        assert risk_levels.count("low") == 3

        priorities = [a["priority"] for entry in portfolio for a in entry["nexus_alerts"]]
        assert priorities.count("high") <= 5
        assert priorities.count("low") == 5

        for entry in portfolio:
            for state in entry["states"]:
                assert state["state_code"] in {"CA", "NY", "TX", "FL", "IL"}
            assert all(t["priority"] != "low" for t in entry["tasks"])

    def test_clean_priority_states_defaults(self):
        assert ClientGenerator.clean_priority_states(None) == ["CA", "NY", "TX", "FL", "IL"]
        assert ClientGenerator.clean_priority_states(["wa", "WA", "ZZ"]) == ["WA"]
