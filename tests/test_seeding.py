"""Tests for the forward-rotation construction heuristic."""
import random

from models.employee import EmployeeConstraint, EmployeeConstraintType
from models.request import GenerationOptions
from models.shift import ShiftType
from optimizer.seeding import RotationSeeder, _split
from optimizer.validation import ScheduleValidator


def test_split_is_even_and_front_loaded():
    assert _split(7, 3) == [3, 2, 2]
    assert _split(0, 2) == [0, 0]
    assert _split(5, 0) == []


def test_pattern_keeps_a_rest_day(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    pattern = RotationSeeder(model).rotation_pattern()

    assert len(pattern) == len(roster)
    assert None in pattern
    assert pattern.count(ShiftType.DAY) == 2
    assert pattern.count(ShiftType.NIGHT) == 2


def test_pattern_never_rotates_backwards(request_factory, roster, build_model):
    """Within a working block shift types only move day → evening → night."""
    model = build_model(request_factory(counts=(3, 2, 4)), roster)
    pattern = RotationSeeder(model).rotation_pattern()

    for current, following in zip(pattern, pattern[1:]):
        if current is not None and following is not None:
            assert following.order >= current.order


def test_night_blocks_respect_the_legal_limit(request_factory, roster, build_model):
    model = build_model(request_factory(counts=(2, 2, 5)), roster)
    pattern = RotationSeeder(model).rotation_pattern()

    longest = run = 0
    for shift_type in pattern + pattern:
        run = run + 1 if shift_type == ShiftType.NIGHT else 0
        longest = max(longest, run)
    assert longest <= model.limits.max_consecutive_nights


def test_seed_covers_every_slot_exactly(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    assignments = RotationSeeder(model).seed()

    for slot in model.slots:
        assert assignments.headcount(slot) == model.required[slot]
    assert ScheduleValidator(model).validate(assignments).is_feasible


def test_seed_is_deterministic_without_shuffle(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    assert RotationSeeder(model).seed() == RotationSeeder(model).seed()


def test_shuffled_seed_uses_the_rng(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    first = RotationSeeder(model, random.Random(1), shuffle=True).seed()
    again = RotationSeeder(model, random.Random(1), shuffle=True).seed()
    assert first == again


def test_seed_respects_eligibility(request_factory, roster, build_model):
    roster[0].constraints.append(EmployeeConstraint(EmployeeConstraintType.NO_NIGHT))
    model = build_model(request_factory(), roster)
    assignments = RotationSeeder(model).seed()

    assert all(model.is_eligible(a.employee_id, a.slot) for a in assignments)


def test_enforced_mentor_pairs_share_an_offset(request_factory, roster, build_model):
    roster[1].mentor_id = roster[0].id
    options = GenerationOptions(enforce_mentorship_pairing=True)
    model = build_model(request_factory(options=options), roster)
    offsets = RotationSeeder(model).offsets(len(roster))

    assert offsets[roster[1].id] == offsets[roster[0].id]
    assert len(set(offsets.values())) == len(roster) - 1


def test_pairs_are_ignored_unless_enforced(request_factory, roster, build_model):
    roster[1].mentor_id = roster[0].id
    model = build_model(request_factory(), roster)
    offsets = RotationSeeder(model).offsets(len(roster))
    assert offsets[roster[1].id] != offsets[roster[0].id]


def test_compatible_blocks_day_then_night(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    seeder = RotationSeeder(model)
    assignments = RotationSeeder(model).seed().copy()

    employee_id = roster[0].id
    for shift_date in model.dates[:3]:
        if not assignments.is_free(employee_id, shift_date):
            assignments.unassign(employee_id, shift_date)
    assignments.assign(employee_id, model.slot_for(model.dates[0], ShiftType.DAY))

    night = model.slot_for(model.dates[1], ShiftType.NIGHT)
    evening = model.slot_for(model.dates[1], ShiftType.EVENING)
    assert not seeder.compatible(assignments, employee_id, night)
    assert seeder.compatible(assignments, employee_id, evening)
