"""Property-based checks of the ballistic engine."""

from __future__ import annotations

import numpy as np
from hypothesis import given, settings
from hypothesis import strategies as st

from fcsgen.ballistics import compare_tables, compute, sample_distances
from fcsgen.ballistics import penetration as pen
from fcsgen.ballistics.drag import ExponentialDrag
from fcsgen.model.data import ArmorPowerSeries, BallisticRow, DeMarreParams, ProjectileEntry, ProjectileKind

velocities = st.floats(min_value=50.0, max_value=2000.0, allow_nan=False)
masses = st.floats(min_value=0.05, max_value=30.0, allow_nan=False)
calibers = st.floats(min_value=7.62, max_value=155.0, allow_nan=False)


@given(limit=st.floats(min_value=0.0, max_value=10000.0, allow_nan=False))
def test_sampling_grid(limit):
    d = sample_distances(limit)
    assert d[0] == 0.0
    assert d[-1] <= limit + 1e-9
    steps = np.diff(d)
    assert np.all((steps == 50.0) | (steps == 100.0))
    assert np.all(d[1:][steps == 100.0] > 1000.0)


@given(v0=velocities, k=st.floats(min_value=0.0, max_value=1e-2, allow_nan=False))
def test_drag_never_speeds_up(v0, k):
    d = sample_distances(4000.0)
    v, t = ExponentialDrag().profile(v0, k, d)
    assert np.all(np.diff(v) <= 0.0)
    assert np.all(np.diff(t) > 0.0)
    # Slowing down can only take longer than flying at the muzzle velocity
    assert np.all(t >= d / v0 - 1e-9)


@given(v=velocities, dv=st.floats(min_value=1.0, max_value=500.0), m=masses, cal=calibers)
def test_demarre_increases_with_velocity(v, dv, m, cal):
    slow, fast = pen.demarre_penetration(DeMarreParams(), np.array([v, v + dv]), caliber_mm=cal, mass_kg=m)
    assert fast > slow > 0.0


@given(
    pairs=st.lists(
        st.tuples(velocities, st.floats(min_value=0.0, max_value=1000.0, allow_nan=False)), min_size=1, max_size=8
    ),
    v=st.floats(min_value=0.0, max_value=3000.0, allow_nan=False),
)
def test_armor_power_stays_within_breakpoints(pairs, v):
    series, _ = ArmorPowerSeries.from_pairs(pairs)
    got = float(pen.armor_power_penetration(series, np.array([v]))[0])
    assert series.penetrations.min() - 1e-9 <= got <= series.penetrations.max() + 1e-9


@settings(max_examples=30, deadline=None)
@given(v0=st.floats(min_value=400.0, max_value=1800.0), m=masses, cal=calibers)
def test_kinetic_tables_are_monotonic(v0, m, cal):
    entry = ProjectileEntry(
        projectile_id="p",
        kind=ProjectileKind.AP,
        weapon="w",
        ammo="p",
        slot=0,
        velocity=v0,
        caliber_mm=cal,
        mass_kg=m,
        law=DeMarreParams(),
    )
    rows = compute(entry).rows
    assert rows[0].distance_m == 0.0
    assert all(b.distance_m > a.distance_m for a, b in zip(rows, rows[1:]))
    assert all(b.time_s > a.time_s for a, b in zip(rows, rows[1:]))
    assert all(b.penetration_mm <= a.penetration_mm for a, b in zip(rows, rows[1:]))


@given(
    st.lists(
        st.tuples(
            st.floats(min_value=0.0, max_value=4000.0),
            st.floats(min_value=0.0, max_value=20.0),
            st.floats(min_value=0.0, max_value=2000.0),
        ),
        max_size=20,
    )
)
def test_table_matches_itself(triples):
    rows = [BallisticRow(*t) for t in triples]
    assert compare_tables(rows, rows, "strict") == []
    assert compare_tables(rows, rows, "lenient") == []
