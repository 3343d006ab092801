"""Unit tests for Result type."""

import dataclasses

import pytest

from src.shared.result import Err, Ok, partition


class TestOk:
    """Tests for Ok result type."""

    def test_ok_is_ok(self) -> None:
        result = Ok("success")
        assert result.is_ok() is True
        assert result.is_err() is False

    def test_ok_unwrap(self) -> None:
        assert Ok(42).unwrap() == 42
        assert Ok(42).unwrap_or(100) == 42

    def test_ok_frozen(self) -> None:
        """Test Ok is immutable."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            Ok(42).value = 43  # type: ignore[misc]


class TestErr:
    """Tests for Err result type."""

    def test_err_is_err(self) -> None:
        result = Err(ValueError("bad"))
        assert result.is_ok() is False
        assert result.is_err() is True

    def test_err_unwrap_raises_contained_error(self) -> None:
        with pytest.raises(ValueError, match="bad"):
            Err(ValueError("bad")).unwrap()

    def test_err_unwrap_or(self) -> None:
        assert Err(ValueError("bad")).unwrap_or(7) == 7


class TestPatternMatching:
    """Tests for structural pattern matching on results."""

    def test_match_ok_and_err(self) -> None:
        def describe(result) -> str:
            match result:
                case Ok(value):
                    return f"value {value}"
                case Err(error):
                    return f"error {error}"
            return "unreachable"

        assert describe(Ok(1)) == "value 1"
        assert describe(Err(RuntimeError("x"))) == "error x"


class TestPartition:
    """Tests for splitting results into values and errors."""

    def test_partition_keeps_order(self) -> None:
        first, second = ValueError("a"), OSError("b")
        values, errors = partition([Ok(1), Err(first), Ok(2), Err(second)])
        assert values == [1, 2]
        assert errors == [first, second]

    def test_partition_empty(self) -> None:
        assert partition([]) == ([], [])

    def test_partition_accepts_generator(self) -> None:
        values, errors = partition(Ok(i) for i in range(3))
        assert values == [0, 1, 2]
        assert errors == []
