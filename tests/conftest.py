"""Shared test fixtures and path setup."""
import sys
from pathlib import Path

# Add src/ to sys.path so tests run without an installed package
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
import pandas as pd

from cdvalidate import Dataset


# --- Dataset fixtures ---

@pytest.fixture
def ages_df():
    """Three patients: one too old, one fine, one without an age."""
    return pd.DataFrame({
        'pid': [1, 2, 3],
        'age': [99, 40, None],
    })


@pytest.fixture
def ages(ages_df):
    return Dataset.from_frame(ages_df)


@pytest.fixture
def vitals_df():
    """Blood pressure records with missing values and one inverted reading."""
    return pd.DataFrame({
        'pid': [1, 2, 3, 4, 5],
        'sex': ['F', 'M', 'F', None, 'M'],
        'sbp': [120, 135, 90, 150, None],
        'dbp': [80, 85, 95, 90, 70],
        'pregnant': [False, False, True, None, False],
    })


@pytest.fixture
def vitals(vitals_df):
    return Dataset.from_frame(vitals_df)


@pytest.fixture
def visits_df():
    """Patient 1 is missing visits 4 and 5; patient 2 has all five."""
    return pd.DataFrame({
        'pid': [1, 1, 1, 2, 2, 2, 2, 2],
        'visit': [1, 2, 3, 1, 2, 3, 4, 5],
        'dose': [10, 10, 20, 5, 5, 5, 10, 10],
    })


@pytest.fixture
def visits(visits_df):
    return Dataset.from_frame(visits_df)


@pytest.fixture
def doses():
    """Dose records keyed by patient and drug, with one duplicated key."""
    return Dataset.from_columns({
        'pid': [1, 1, 2, 2, 3],
        'drug': ['aspirin', 'statin', 'aspirin', 'aspirin', None],
        'route': ['oral', 'oral', 'iv', 'oral', 'topical'],
    })


# --- Reference fixtures ---

@pytest.fixture
def references():
    """Codelists and templates by reference name."""
    return {
        'routes': ['oral', 'iv', 'sc'],
        'visit_plan': [1, 2, 3, 4, 5],
    }


@pytest.fixture
def rule_table():
    """Rule definitions as a loader would hand them over."""
    return [
        {'name': 'adult', 'rule': 'in_range(age, 18, 95)', 'description': 'Adults only'},
        {'name': 'has_pid', 'rule': 'not_missing(pid)', 'description': ''},
        {'name': 'unique_pid', 'rule': 'isUniqueKey(pid)'},
    ]
