#!/usr/bin/env python3
"""
Example: Validate visit and vital-sign records from a small clinical trial.

Builds a patient/visit table in memory, declares rules both in code and
as a rule table, confronts the data and prints the summary and the
violating rows.

Usage:
    python examples/validate_trial_visits.py
"""

import logging
import sys
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from cdvalidate import (
    ContainsExactly,
    InLinearSequence,
    IsUniqueKey,
    RuleSet,
    confront,
)


def build_visits() -> pd.DataFrame:
    """Three patients, five planned visits each; patient 103 dropped out."""
    return pd.DataFrame({
        'pid': [101] * 5 + [102] * 5 + [103] * 3,
        'visit': [1, 2, 3, 4, 5, 1, 2, 3, 4, 5, 1, 2, 3],
        'sex': ['F'] * 5 + ['M'] * 5 + ['F', 'F', None],
        'age': [54] * 5 + [17] * 5 + [63, 63, None],
        'sbp': [128, 131, 125, 140, 122, 118, 119, 70, 121, 117, 150, None, 149],
        'dbp': [82, 85, 80, 90, 78, 76, 75, 88, 77, 74, 95, 93, 92],
        'route': ['oral'] * 10 + ['oral', 'iv', 'inhaled'],
    })


RULE_TABLE = [
    {'name': 'adult', 'rule': 'in_range(age, 18, 95)', 'description': 'Inclusion criterion'},
    {'name': 'sbp_above_dbp', 'rule': 'inequality(sbp, ">", dbp)', 'description': 'Systolic above diastolic'},
    {'name': 'sbp_plausible', 'rule': 'in_range(sbp, 80, 220)', 'description': ''},
    {'name': 'route_coded', 'rule': 'in_codelist(route, routes)', 'description': 'Route in codelist'},
    {'name': 'sex_known', 'rule': 'not_missing(sex)', 'description': ''},
]


def main():
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

    df = build_visits()
    print(f"\n--- Validating {len(df):,} visit records ---")

    structural = RuleSet([
        IsUniqueKey('pid', 'visit', name='one_record_per_visit'),
        InLinearSequence('visit', 1, 5, by='pid', name='visits_complete'),
        ContainsExactly('pid', 'visit_plan', columns='visit', name='matches_visit_plan'),
    ], name='trial_visits')
    rules = structural + RuleSet.from_table(RULE_TABLE)

    references = {
        'routes': ['oral', 'iv', 'sc'],
        'visit_plan': [1, 2, 3, 4, 5],
    }

    result = confront(df, rules, references)

    print("\nSummary:")
    print(result.summary_frame().drop(columns=['error']).to_string(index=False))

    violating = result.violating_rows().to_frame()
    print(f"\nViolating rows ({len(violating)}):")
    print(violating.to_string(index=False))

    if result.errors():
        print("\nRules that could not be evaluated:")
        for name, message in result.errors().items():
            print(f"  {name}: {message}")
    print()


if __name__ == '__main__':
    main()
