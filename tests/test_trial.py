from dreamlog.core.clock import DAY_MS
from dreamlog.schemas.user import UserRecord
from dreamlog.security import hashing, trial

CREATED = 1_700_000_000_000


def _user():
    return UserRecord(email="t@x.com", password_hash="x", created=CREATED)


def test_trial_boundary_is_inclusive():
    end = CREATED + 14 * DAY_MS

    assert trial.is_active(_user(), now=end - 1)
    assert trial.is_active(_user(), now=end)
    assert not trial.is_active(_user(), now=end + 1)


def test_trial_days_setting_is_honoured():
    assert trial.is_active(_user(), now=CREATED + 20 * DAY_MS, trial_days=30)
    assert not trial.is_active(_user(), now=CREATED + 2 * DAY_MS, trial_days=1)


def test_days_left_rounds_up_and_clamps():
    assert trial.days_left(_user(), now=CREATED) == 14
    assert trial.days_left(_user(), now=CREATED + 1) == 14
    assert trial.days_left(_user(), now=CREATED + 13 * DAY_MS + 1) == 1
    assert trial.days_left(_user(), now=CREATED + 14 * DAY_MS) == 0
    assert trial.days_left(_user(), now=CREATED + 40 * DAY_MS) == 0


def test_trial_ends_at():
    assert trial.trial_ends_at(_user()) == CREATED + 14 * DAY_MS


def test_password_digest():
    digest = hashing.get_password_hash("p")

    assert digest == "148de9c5a7a44d19e56cd9ae1a554bf67847afb0c58f6e12fa29ac7ddfca9940"
    assert hashing.verify_password("p", digest)
    assert not hashing.verify_password("q", digest)
