import pytest

from heimdall.datatypes.discord_datatypes import (
    ChannelID,
    GuildID,
    MessageID,
    RoleID,
    UserID,
)


class DummyObj:
    def __init__(self, id_val=None):
        self.id = id_val


def test_userid_from_int_and_str_and_equality_and_hash():
    u1 = UserID(12345)
    assert u1.to_int() == 12345
    assert str(u1) == "12345"

    u2 = UserID(" 12345 ")
    assert u1 == u2

    u3 = UserID.from_int(67890)
    assert isinstance(u3, UserID)
    assert u3.to_int() == 67890

    # from_user helper
    u4 = UserID.from_user(DummyObj(id_val=111))  # type: ignore
    assert u4.to_int() == 111

    # equality with raw types
    assert u4 == 111
    assert u4 == "111"

    # hashing and set membership
    assert len({u1, u2, u3, u4}) == 3


@pytest.mark.parametrize("bad", [[], 1.5, True, "abc"])
def test_userid_invalid(bad):
    with pytest.raises(ValueError):
        UserID(bad)  # type: ignore


def test_different_wrappers_never_compare_equal():
    assert GuildID(5) != UserID(5)
    assert ChannelID(5) != RoleID(5)


def test_wrapping_a_wrapper_copies_the_value():
    assert RoleID(RoleID(9)) == RoleID(9)


@pytest.mark.parametrize(
    "cls, helper, val_int",
    [
        (GuildID, "from_guild", 222),
        (ChannelID, "from_channel", 333),
        (MessageID, "from_message", 444),
        (RoleID, "from_role", 555),
    ],
)
def test_id_wrappers_common_behaviour(cls, helper, val_int):
    inst = cls(val_int)
    assert inst.to_int() == val_int
    assert str(inst) == str(val_int)
    assert repr(inst) == f"{cls.__name__}('{val_int}')"

    assert inst == cls(str(val_int))
    assert getattr(cls, helper)(DummyObj(id_val=val_int)) == inst
