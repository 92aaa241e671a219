from punchclock.schemas.punch import Coordinates
from punchclock.services.geo import distance_feet
from punchclock.services.geofence import GeofencePolicy

from conftest import build_job

policy = GeofencePolicy(low_accuracy_meters=50)

AT_VENUE = Coordinates(latitude=40.0, longitude=-75.0, accuracy=5)
NEARBY = Coordinates(latitude=40.0002, longitude=-75.0, accuracy=5)
FAR = Coordinates(latitude=40.01, longitude=-75.0, accuracy=5)


def test_allowed_distance_adds_grace():
    assert policy.allowed_distance_feet(build_job(geofence_radius=100, grace_distance=25)) == 125
    assert policy.allowed_distance_feet(build_job(geofence_radius=100, grace_distance=None)) == 100
    assert policy.allowed_distance_feet(build_job(geofence_radius=None)) is None


def test_boundary_is_inside():
    job = build_job(config={"geofence": True})
    d = distance_feet(NEARBY, job.venue_coordinates)

    job.geofence_radius = d / 2
    job.grace_distance = d / 2
    assert policy.is_within_geofence(NEARBY, job) is True
    assert policy.violates_geofence(NEARBY, job) is False

    job.grace_distance = d / 2 - 1e-6
    assert policy.is_within_geofence(NEARBY, job) is False
    assert policy.violates_geofence(NEARBY, job) is True


def test_far_point_violates_geofenced_job():
    job = build_job(config={"geofence": True}, geofence_radius=100)
    assert policy.violates_geofence(AT_VENUE, job) is False
    assert policy.violates_geofence(FAR, job) is True


def test_same_inputs_same_answer():
    job = build_job(config={"geofence": True}, geofence_radius=100)
    first = policy.is_within_geofence(FAR, job)
    second = policy.is_within_geofence(FAR, job)
    assert first == second


def test_non_geofenced_job_never_violates():
    job = build_job(config={"geofence": False}, geofence_radius=100)
    assert policy.violates_geofence(FAR, job) is False
    assert policy.violates_geofence(Coordinates(latitude=40.0, longitude=-75.0, accuracy=500), job) is False


def test_missing_point_is_not_a_violation():
    job = build_job(config={"geofence": True})
    assert policy.violates_geofence(None, job) is False
    assert policy.violates_geofence(FAR, None) is False


def test_low_accuracy_fallback_without_venue():
    job = build_job(config={"geofence": True}, latitude=None, longitude=None)
    assert policy.has_venue_location(job) is False
    assert policy.violates_geofence(Coordinates(latitude=40.0, longitude=-75.0, accuracy=50), job) is False
    assert policy.violates_geofence(Coordinates(latitude=40.0, longitude=-75.0, accuracy=51), job) is True


def test_low_accuracy_fallback_without_radius():
    job = build_job(config={"geofence": True}, geofence_radius=None)
    assert policy.violates_geofence(FAR, job) is False
    assert policy.violates_geofence(Coordinates(latitude=40.01, longitude=-75.0, accuracy=80), job) is True
