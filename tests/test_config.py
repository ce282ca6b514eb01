"""Tests for histogram configuration."""

import pytest

from binsight.core.config import HistogramConfig, Margin
from binsight.core.errors import ConfigurationError
from binsight.core.selection import SelectionMode


class TestHistogramConfig:
    """Tests for HistogramConfig defaults and validation."""

    def test_defaults(self):
        config = HistogramConfig(column="age")
        assert config.width == 600
        assert config.height == 400
        assert config.margin == Margin(top=20, right=20, bottom=40, left=40)
        assert config.colors == ("steelblue", "orange")
        assert config.max_ordinal_bins == 20
        assert config.selection_mode == SelectionMode.SINGLE
        assert config.axis is False
        assert config.show_labels_below is False
        assert config.memory_limit == "1GB"
        assert config.threads == 4

    def test_column_required(self):
        with pytest.raises(ConfigurationError):
            HistogramConfig()

    def test_camel_case_aliases(self):
        config = HistogramConfig.from_dict(
            {
                "column": "education",
                "maxOrdinalBins": 3,
                "selectionMode": "multiple",
                "showLabelsBelow": True,
                "binThreshold": [10, 20],
                "margin": {"top": 5, "right": 5, "bottom": 5, "left": 5},
                "colors": ["gray", "red"],
            }
        )
        assert config.max_ordinal_bins == 3
        assert config.selection_mode == SelectionMode.MULTIPLE
        assert config.show_labels_below is True
        assert config.bin_threshold == (10, 20)
        assert config.margin.left == 5
        assert config.selected_color == "red"
        assert config.unselected_color == "gray"

    def test_keyword_arguments_take_precedence(self):
        config = HistogramConfig.from_dict({"column": "a", "width": 100}, width=200)
        assert config.width == 200

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError, match="Unknown configuration options"):
            HistogramConfig.from_dict({"column": "a", "colour": "red"})

    @pytest.mark.parametrize(
        "options",
        [
            {"width": 0},
            {"height": -1},
            {"width": True},
            {"colors": ("red",)},
            {"data_format": "xlsx"},
            {"threads": 0},
            {"fetch_timeout": 0},
            {"max_ordinal_bins": 0},
            {"bin_threshold": "doane"},
            {"selection_mode": "lasso"},
            {"margin": {"middle": 3}},
        ],
    )
    def test_invalid_options(self, options):
        with pytest.raises(ConfigurationError):
            HistogramConfig.from_dict({"column": "a", **options})

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            HistogramConfig.from_dict({"column": "a", "width": -5})

    def test_with_options(self):
        config = HistogramConfig(column="a")
        updated = config.with_options(selectionMode="drag", width=300)
        assert updated.selection_mode == SelectionMode.DRAG
        assert updated.width == 300
        assert config.width == 600

    def test_binning_config(self):
        config = HistogramConfig(column="a", bin_threshold=10, max_ordinal_bins=5, date_bin_days=7)
        binning = config.binning
        assert binning.bin_threshold == 10
        assert binning.max_ordinal_bins == 5
        assert binning.date_bin_days == 7
