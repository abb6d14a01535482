"""
Country boundary acquisition from Natural Earth.

Downloads the 1:50m admin-0 countries archive, extracts it, and selects one
country by its ADMIN name.
"""

import zipfile
from pathlib import Path
from typing import Union

import geopandas as gpd
import requests

from pak_biodiversity.loaders import read_boundary

NATURAL_EARTH_URL = (
    "https://naciscdn.org/naturalearth/50m/cultural/ne_50m_admin_0_countries.zip"
)


def download_archive(
    url: str,
    target_path: Union[str, Path],
    timeout: float = 120,
) -> Path:
    """
    Download a zip archive to disk.

    Raises:
        requests.exceptions.HTTPError: On a non-2xx response
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    response = requests.get(url, timeout=timeout)
    response.raise_for_status()

    with open(target_path, "wb") as f:
        f.write(response.content)

    return target_path


def extract_shapefile(archive_path: Union[str, Path], extract_dir: Union[str, Path]) -> Path:
    """
    Extract an archive and return the path of the first .shp inside it.

    Raises:
        FileNotFoundError: If the archive holds no shapefile
    """
    extract_dir = Path(extract_dir)
    extract_dir.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(archive_path) as zf:
        zf.extractall(extract_dir)

    shapefiles = sorted(extract_dir.rglob("*.shp"))
    if not shapefiles:
        raise FileNotFoundError(f"No .shp found in {archive_path}")
    return shapefiles[0]


def select_country(
    shapefile: Union[str, Path],
    country_name: str,
    name_field: str = "ADMIN",
) -> gpd.GeoDataFrame:
    """Read a countries layer and return one dissolved country boundary."""
    return read_boundary(shapefile, name_field=name_field, name=country_name)
