"""Tests for the engine tracer (cuadre_engines/tracer.py)."""

from decimal import Decimal

from cuadre_engines.cuadre_totals import CuadreInputs, calculate_cuadre
from cuadre_engines.tracer import compute_input_fingerprint, traced_engine
from cuadre_kernel.domain.values import CurrencyPair


class TestFingerprint:
    def test_deterministic(self):
        kwargs = {"inputs": CuadreInputs(cash=CurrencyPair.of("10.50", 0))}
        assert compute_input_fingerprint(("inputs",), kwargs) == compute_input_fingerprint(
            ("inputs",), dict(kwargs),
        )

    def test_decimal_text_matters(self):
        """10.5 and 10.50 are the same amount but distinct inputs."""
        a = compute_input_fingerprint(("x",), {"x": Decimal("10.5")})
        b = compute_input_fingerprint(("x",), {"x": Decimal("10.50")})
        assert a != b

    def test_dict_order_ignored(self):
        a = compute_input_fingerprint(("d",), {"d": {"b": 1, "a": 2}})
        b = compute_input_fingerprint(("d",), {"d": {"a": 2, "b": 1}})
        assert a == b
        assert len(a) == 16

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None},
        )


class TestTracedEngine:
    def test_emits_trace(self, captured_logs):
        calculate_cuadre(inputs=CuadreInputs())

        traces = [r for r in captured_logs() if r["message"] == "CUADRE_ENGINE_TRACE"]
        assert traces[0]["engine_name"] == "cuadre_totals"
        assert traces[0]["engine_version"] == "1.0"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_wraps_preserve_name(self):
        @traced_engine("sample", "0.1")
        def sample(*, value):
            return value * 2

        assert sample(value=3) == 6
        assert sample.__name__ == "sample"
