"""
Tests for sampling-effort classification.

0 -> Unsampled, 1-9 -> Low, 10-49 -> Medium, 50-199 -> High, >=200 -> Very High
"""

import numpy as np
import pandas as pd
import pytest

from pak_biodiversity.richness import classify_sampling_effort, sampling_effort_label

BOUNDARY_CASES = [
    (0, "Unsampled"),
    (1, "Low"),
    (9, "Low"),
    (10, "Medium"),
    (49, "Medium"),
    (50, "High"),
    (199, "High"),
    (200, "Very High"),
    (100_000, "Very High"),
]


class TestSamplingEffortLabel:
    """Tests for the scalar classifier."""

    @pytest.mark.parametrize("count,label", BOUNDARY_CASES)
    def test_boundaries(self, count, label):
        assert sampling_effort_label(count) == label

    def test_numpy_integer(self):
        assert sampling_effort_label(np.int64(12)) == "Medium"

    @pytest.mark.parametrize("bad", [-1, 2.5, True, "5"])
    def test_invalid_counts_raise(self, bad):
        with pytest.raises(ValueError):
            sampling_effort_label(bad)


class TestClassifySamplingEffort:
    """Tests for the vectorized classifier."""

    def test_matches_scalar(self):
        counts = pd.Series([c for c, _ in BOUNDARY_CASES])
        labels = classify_sampling_effort(counts)
        assert list(labels.astype(str)) == [label for _, label in BOUNDARY_CASES]

    def test_ordered_categorical(self):
        labels = classify_sampling_effort(pd.Series([0, 300]))
        assert labels.cat.ordered
        assert list(labels.cat.categories) == ["Unsampled", "Low", "Medium", "High", "Very High"]
        assert labels.iloc[0] < labels.iloc[1]

    def test_total_no_nulls(self):
        labels = classify_sampling_effort(pd.Series(range(0, 500, 7)))
        assert labels.notna().all()

    def test_negative_raises(self):
        with pytest.raises(ValueError):
            classify_sampling_effort(pd.Series([3, -1]))

    def test_fractional_raises(self):
        with pytest.raises(ValueError):
            classify_sampling_effort(pd.Series([1.5]))

    def test_null_raises(self):
        with pytest.raises(ValueError):
            classify_sampling_effort(pd.Series([1.0, np.nan]))

    def test_custom_breaks(self):
        labels = classify_sampling_effort(pd.Series([0, 5, 6]), breaks=[0, 5], labels=["none", "few", "many"])
        assert list(labels.astype(str)) == ["none", "few", "many"]

    def test_mismatched_labels_raise(self):
        with pytest.raises(ValueError):
            classify_sampling_effort(pd.Series([1]), breaks=[0, 5], labels=["a", "b"])
