import sys
from pathlib import Path

import pytest

# Add the parent directory to path to import idcard_info
sys.path.insert(0, str(Path(__file__).parent.parent))

from idcard_info.location_table import build_code_table


# Small slice of the administrative dataset in database.json layout
SAMPLE_DATABASE = {
    "1": ["北京市|110000", "上海市|310000", "海南省|460000", "四川省|510000"],
    "1_0": ["北京市|110100"],
    "1_1": ["上海市|310100"],
    "1_2": ["海口市|460100", "屯昌县|460022"],
    "1_3": ["成都市|510100", "重庆市|510200"],
    "1_0_0": ["东城区|110101", "朝阳区|110105"],
    "1_2_0": ["龙华区|460106"],
    "1_3_0": ["锦江区|510104"],
    "1_3_1": ["长寿县|510232"],
}


@pytest.fixture
def sample_database():
    return {key: list(entries) for key, entries in SAMPLE_DATABASE.items()}


@pytest.fixture
def sample_table(sample_database):
    return build_code_table(sample_database)
