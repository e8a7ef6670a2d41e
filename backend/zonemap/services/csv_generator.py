"""Export CSVs from zone configurations."""
import csv
import io
from typing import List

from zonemap.models.schemas import PriceMatrixDict, ZoneConfig
from zonemap.services.name_normalizer import parse_city_key
from zonemap.services.zone_file_parser import ZONE_MAPPING_TEMPLATE


def generate_template_csv() -> str:
    return ZONE_MAPPING_TEMPLATE


def generate_matrix_csv(matrix: PriceMatrixDict) -> str:
    out = io.StringIO()
    writer = csv.writer(out)
    zones = list(matrix)
    writer.writerow(["From \\ To"] + zones)
    for f in zones:
        row = matrix.get(f, {})
        writer.writerow([f] + ["" if row.get(t) is None else f"{row[t]:.2f}" for t in zones])
    return out.getvalue()


def generate_zone_cities_csv(zones: List[ZoneConfig]) -> str:
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(["Zone", "Region", "State", "City"])
    for z in zones:
        for key in z.selected_cities:
            city, state = parse_city_key(key)
            writer.writerow([z.zone_code, z.region, state, city])
    return out.getvalue()
