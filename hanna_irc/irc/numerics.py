"""Numeric reply codes, range groups and error severity."""

from __future__ import annotations

from enum import Enum

RPL_WELCOME = "001"
RPL_YOURHOST = "002"
RPL_CREATED = "003"
RPL_MYINFO = "004"
RPL_ISUPPORT = "005"
RPL_LUSERCLIENT = "251"
RPL_LUSEROP = "252"
RPL_LUSERUNKNOWN = "253"
RPL_LUSERCHANNELS = "254"
RPL_LUSERME = "255"
RPL_ADMINME = "256"
RPL_ADMINLOC1 = "257"
RPL_ADMINLOC2 = "258"
RPL_ADMINEMAIL = "259"
RPL_LOCALUSERS = "265"
RPL_GLOBALUSERS = "266"
RPL_WHOISCERTFP = "276"
RPL_AWAY = "301"
RPL_UNAWAY = "305"
RPL_NOWAWAY = "306"
RPL_WHOISREGNICK = "307"
RPL_WHOISUSER = "311"
RPL_WHOISSERVER = "312"
RPL_WHOISOPERATOR = "313"
RPL_WHOISIDLE = "317"
RPL_ENDOFWHOIS = "318"
RPL_WHOISCHANNELS = "319"
RPL_LIST = "322"
RPL_LISTEND = "323"
RPL_CHANNELMODEIS = "324"
RPL_CHANNEL_URL = "328"
RPL_CREATIONTIME = "329"
RPL_WHOISACCOUNT = "330"
RPL_NOTOPIC = "331"
RPL_TOPIC = "332"
RPL_TOPICWHOTIME = "333"
RPL_WHOISBOT = "335"
RPL_WHOISACTUALLY = "338"
RPL_INVITELIST = "346"
RPL_EXCEPTLIST = "348"
RPL_NAMREPLY = "353"
RPL_ENDOFNAMES = "366"
RPL_BANLIST = "367"
RPL_INFO = "371"
RPL_MOTD = "372"
RPL_MOTDSTART = "375"
RPL_ENDOFMOTD = "376"
RPL_WHOISHOST = "378"
RPL_WHOISMODES = "379"
RPL_VISIBLEHOST = "396"
ERR_NOMOTD = "422"
ERR_ERRONEUSNICKNAME = "432"
ERR_NICKNAMEINUSE = "433"
ERR_NICKCOLLISION = "436"
ERR_UNAVAILRESOURCE = "437"
ERR_PASSWDMISMATCH = "464"
ERR_YOUREBANNEDCREEP = "465"
RPL_WHOISSECURE = "671"
RPL_LOGGEDIN = "900"
RPL_LOGGEDOUT = "901"
ERR_NICKLOCKED = "902"
ERR_SASLFAIL = "904"
ERR_SASLTOOLONG = "905"

NICK_REJECTED = frozenset(
    {ERR_ERRONEUSNICKNAME, ERR_NICKNAMEINUSE, ERR_NICKCOLLISION, ERR_UNAVAILRESOURCE}
)
FATAL_REGISTRATION = frozenset({ERR_PASSWDMISMATCH, ERR_YOUREBANNEDCREEP})
STATS_NUMERICS = frozenset(
    [str(code) for code in range(211, 220)] + [str(code) for code in range(241, 251)]
)


class NumericRange(Enum):
    """Range groups used when a numeric has no exact handler."""

    REGISTRATION = (1, 99)
    COMMAND_RESPONSE = (200, 299)
    USER_INFO = (301, 319)
    CHANNEL_INFO = (321, 366)
    MOTD = (372, 376)
    ERROR = (400, 599)

    @property
    def low(self) -> int:
        return self.value[0]

    @property
    def high(self) -> int:
        return self.value[1]

    @classmethod
    def for_code(cls, code: str) -> NumericRange | None:
        if len(code) != 3 or not code.isdigit():
            return None
        number = int(code)
        for group in cls:
            if group.low <= number <= group.high:
                return group
        return None


class ErrorSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def classify_error(code: str) -> ErrorSeverity:
    """Severity of a server error numeric.

    Rejected nicks, fatal registration replies and the server ``ERROR``
    command are critical. 400-449 are warnings, everything else is an error.
    """
    if code in NICK_REJECTED or code in FATAL_REGISTRATION or code == "ERROR":
        return ErrorSeverity.CRITICAL
    if not code.isdigit():
        return ErrorSeverity.ERROR
    number = int(code)
    if 400 <= number < 450:
        return ErrorSeverity.WARNING
    return ErrorSeverity.ERROR
