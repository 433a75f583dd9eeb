"""Tests for homestead.crops -- growth functions and the crop catalog."""

from pathlib import Path

import numpy as np
import pytest

from homestead.crops import growth
from homestead.crops.catalog import CatalogError, CropCatalog, CropConfig
from homestead.crops.growth import Phase
from homestead.errors import NotFound

REPO_CROPS = Path(__file__).resolve().parent.parent / "config" / "crops.yaml"


class TestPhase:
    """Tests for the pure growth function."""

    def test_half_grown(self) -> None:
        reading = growth.phase(planted_at=100.0, growth_time=60, now=130.0)
        assert reading.phase is Phase.GROWING
        assert reading.fraction == pytest.approx(0.5)

    def test_offline_catch_up_without_polling(self) -> None:
        """Evaluating long after planting is enough; no polling needed."""
        reading = growth.phase(planted_at=100.0, growth_time=60, now=190.0)
        assert reading.phase is Phase.READY_TO_HARVEST
        assert reading.fraction == 1.0
        assert reading.is_ready

    def test_ready_exactly_at_growth_time(self) -> None:
        assert growth.phase(0.0, 60, 60.0).phase is Phase.READY_TO_HARVEST
        assert growth.phase(0.0, 60, 59.999).phase is Phase.GROWING

    def test_clock_skew_reads_as_zero(self) -> None:
        reading = growth.phase(planted_at=100.0, growth_time=60, now=50.0)
        assert reading.fraction == 0.0
        assert reading.phase is Phase.GROWING

    def test_zero_growth_time_is_ready(self) -> None:
        assert growth.phase(0.0, 0, 0.0).is_ready


class TestStage:
    """Tests for visual stage selection."""

    @pytest.mark.parametrize(
        ("fraction", "expected"),
        [(0.0, 0), (0.32, 0), (0.34, 1), (0.5, 1), (0.67, 2), (1.0, 3)],
    )
    def test_four_stages(self, fraction: float, expected: int) -> None:
        assert growth.stage(fraction, 4) == expected

    def test_single_stage(self) -> None:
        assert growth.stage(0.9, 1) == 0


class TestFractions:
    """Tests for the vectorised growth fraction."""

    def test_matches_scalar(self) -> None:
        planted = np.array([0.0, 10.0, 50.0])
        duration = np.array([60.0, 60.0, 20.0])
        result = growth.fractions(planted, duration, now=40.0)
        expected = [growth.phase(p, d, 40.0).fraction for p, d in zip(planted, duration)]
        assert result == pytest.approx(expected)

    def test_nan_passthrough(self) -> None:
        result = growth.fractions([np.nan, 0.0], [1.0, 0.0], now=5.0)
        assert np.isnan(result[0])
        assert result[1] == 1.0


class TestCropCatalog:
    """Tests for catalog lookup and validation."""

    def test_lookup(self, catalog: CropCatalog) -> None:
        assert catalog.get("carrot").growth_time == 60
        assert catalog.sell_price("corn") == 150
        assert catalog.purchase_price("wheat") == 40
        assert "carrot" in catalog
        assert len(catalog) == 3

    def test_unknown_crop(self, catalog: CropCatalog) -> None:
        with pytest.raises(NotFound) as excinfo:
            catalog.get("mandrake")
        assert excinfo.value.key == "mandrake"
        assert "mandrake" in str(excinfo.value)

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(CatalogError):
            CropCatalog.from_configs(
                [CropConfig("carrot", growth_time=1), CropConfig("carrot", growth_time=2)],
            )

    @pytest.mark.parametrize(
        "config",
        [
            CropConfig("", growth_time=10),
            CropConfig("x", growth_time=0),
            CropConfig("x", growth_time=10, growth_stages=0),
            CropConfig("x", growth_time=10, sell_price=-1),
        ],
    )
    def test_invalid_entries_rejected(self, config: CropConfig) -> None:
        with pytest.raises(CatalogError):
            CropCatalog.from_configs([config])

    def test_from_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "crops.yaml"
        yaml_file.write_text(
            "crops:\n"
            "  - id: beet\n"
            "    growth_time: 30\n"
            "    growth_stages: 2\n"
            "    sell_price: 12\n",
        )
        catalog = CropCatalog.from_yaml(yaml_file)
        beet = catalog.get("beet")
        assert beet.name == "beet"
        assert beet.growth_stages == 2
        assert beet.purchase_price == 0

    def test_from_yaml_malformed(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "crops.yaml"
        yaml_file.write_text("crops:\n  - name: nameless\n")
        with pytest.raises(CatalogError):
            CropCatalog.from_yaml(yaml_file)

    def test_shipped_catalog_loads(self) -> None:
        catalog = CropCatalog.from_yaml(REPO_CROPS)
        assert {"carrot", "corn"} <= set(catalog)
