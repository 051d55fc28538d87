"""
Data models for the pCloud SDK.

This module defines the decoded forms of the service's JSON structures
used by the change-event stream: result codes, event kinds, file/folder
metadata, share metadata, diff entries and diff batches, plus the
configuration of a diff poll.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any, Union
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum

from .utils import format_timestamp, parse_timestamp, parse_optional_timestamp


class ResultCode(IntEnum):
    """Result codes reported in the ``result`` field of every response."""
    OK = 0
    LOG_IN_REQUIRED = 1000
    NO_FULL_PATH_OR_NAME_OR_FOLDER_ID = 1001
    NO_FULL_PATH_OR_FOLDER_ID = 1002
    NO_FILE_ID_OR_PATH = 1004
    DATE_TIME_FORMAT_NOT_UNDERSTOOD = 1013
    NO_TARGET_PROVIDED = 1037
    PROVIDE_URL = 1040
    LOGIN_FAILED = 2000
    INVALID_NAME = 2001
    PARENT_DIRECTORY_DOES_NOT_EXIST = 2002
    ACCESS_DENIED = 2003
    DIRECTORY_DOES_NOT_EXIST = 2005
    FOLDER_NOT_EMPTY = 2006
    CANNOT_DELETE_ROOT_FOLDER = 2007
    USER_OVER_QUOTA = 2008
    FILE_NOT_FOUND = 2009
    INVALID_PATH = 2010
    VERIFY_MAIL_ADDRESS = 2014
    SHARED_FOLDER_IN_SHARED_FOLDER = 2023
    ONLY_SHARE_OWN_FILES = 2026
    ACTIVE_SHARES_FOR_FOLDER = 2028
    CONNECTION_BROKEN = 2041
    CANNOT_RENAME_ROOT_FOLDER = 2042
    CANNOT_MOVE_INTO_OWN_SUBFOLDER = 2043
    TOO_MANY_LOGINS = 4000
    INTERNAL_ERROR = 5000
    INTERNAL_UPLOAD_ERROR = 5001

    @classmethod
    def describe(cls, code: Optional[int]) -> str:
        """Human-readable description of a result code, known or not."""
        try:
            return _RESULT_DESCRIPTIONS[cls(code)]
        except (ValueError, KeyError):
            return f"Unknown result code {code}"


_RESULT_DESCRIPTIONS = {
    ResultCode.OK: "Everything ok - no error",
    ResultCode.LOG_IN_REQUIRED: "Log in required",
    ResultCode.NO_FULL_PATH_OR_NAME_OR_FOLDER_ID: "No full path or name/folderid provided",
    ResultCode.NO_FULL_PATH_OR_FOLDER_ID: "No full path or folder id provided",
    ResultCode.NO_FILE_ID_OR_PATH: "No file id or file path provided",
    ResultCode.DATE_TIME_FORMAT_NOT_UNDERSTOOD: "Date time format not understood",
    ResultCode.NO_TARGET_PROVIDED: "Please provide at least one of 'topath', 'tofolderid' or 'toname'",
    ResultCode.PROVIDE_URL: "Provide url",
    ResultCode.LOGIN_FAILED: "Log in failed",
    ResultCode.INVALID_NAME: "Invalid file or folder name",
    ResultCode.PARENT_DIRECTORY_DOES_NOT_EXIST: "A component of the parent directory does not exist",
    ResultCode.ACCESS_DENIED: "Access denied",
    ResultCode.DIRECTORY_DOES_NOT_EXIST: "Directory does not exist",
    ResultCode.FOLDER_NOT_EMPTY: "Folder is not empty",
    ResultCode.CANNOT_DELETE_ROOT_FOLDER: "Cannot delete the root folder",
    ResultCode.USER_OVER_QUOTA: "User over quota",
    ResultCode.FILE_NOT_FOUND: "File not found",
    ResultCode.INVALID_PATH: "Invalid path",
    ResultCode.VERIFY_MAIL_ADDRESS: "Please verify your mail address to perform this action",
    ResultCode.SHARED_FOLDER_IN_SHARED_FOLDER: "You are trying to place shared folder into another shared folder",
    ResultCode.ONLY_SHARE_OWN_FILES: "You can only share your own files or folders",
    ResultCode.ACTIVE_SHARES_FOR_FOLDER: "There are active shares or sharerequests for this folder",
    ResultCode.CONNECTION_BROKEN: "Connection broken",
    ResultCode.CANNOT_RENAME_ROOT_FOLDER: "Cannot rename the root folder",
    ResultCode.CANNOT_MOVE_INTO_OWN_SUBFOLDER: "Cannot move a folder to a subfolder of itself",
    ResultCode.TOO_MANY_LOGINS: "Too many logins",
    ResultCode.INTERNAL_ERROR: "Internal error",
    ResultCode.INTERNAL_UPLOAD_ERROR: "Internal upload error",
}


class EventKind(Enum):
    """Kinds of events reported by the diff endpoint."""
    RESET = "reset"
    CREATE_FOLDER = "createfolder"
    DELETE_FOLDER = "deletefolder"
    MODIFY_FOLDER = "modifyfolder"
    CREATE_FILE = "createfile"
    MODIFY_FILE = "modifyfile"
    DELETE_FILE = "deletefile"
    REQUEST_SHARE_IN = "requestsharein"
    ACCEPTED_SHARE_IN = "acceptedsharein"
    DECLINED_SHARE_IN = "declinedsharein"
    DECLINED_SHARE_OUT = "declinedshareout"
    CANCELLED_SHARE_IN = "cancelledsharein"
    REMOVED_SHARE_IN = "removedsharein"
    MODIFIED_SHARE_IN = "modifiedsharein"
    MODIFY_USER_INFO = "modifyuserinfo"

    @property
    def is_folder_event(self) -> bool:
        return self in (EventKind.CREATE_FOLDER, EventKind.DELETE_FOLDER, EventKind.MODIFY_FOLDER)

    @property
    def is_file_event(self) -> bool:
        return self in (EventKind.CREATE_FILE, EventKind.DELETE_FILE, EventKind.MODIFY_FILE)

    @property
    def is_share_event(self) -> bool:
        return self.value.endswith(("sharein", "shareout"))


class FileCategory(IntEnum):
    """Category of a file."""
    UNCATEGORIZED = 0
    IMAGE = 1
    VIDEO = 2
    AUDIO = 3
    DOCUMENT = 4
    ARCHIVE = 5


@dataclass
class Metadata:
    """Metadata of a file or folder."""

    id: str
    name: str
    parent_folder_id: int
    is_folder: bool
    is_mine: bool = True
    is_shared: bool = False
    folder_id: Optional[int] = None
    file_id: Optional[int] = None
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    size: Optional[int] = None
    content_type: Optional[str] = None
    hash: Optional[int] = None
    category: Optional[FileCategory] = None
    icon: Optional[str] = None
    path: Optional[str] = None
    thumb: bool = False
    is_deleted: bool = False
    user_id: Optional[int] = None
    can_read: Optional[bool] = None
    can_modify: Optional[bool] = None
    can_delete: Optional[bool] = None
    can_create: Optional[bool] = None
    contents: List["Metadata"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Metadata":
        """Create Metadata from API response dictionary."""
        category = data.get("category")

        return cls(
            id=data["id"],
            name=data["name"],
            parent_folder_id=data.get("parentfolderid", 0),
            is_folder=data["isfolder"],
            is_mine=data.get("ismine", True),
            is_shared=data.get("isshared", False),
            folder_id=data.get("folderid"),
            file_id=data.get("fileid"),
            created=parse_optional_timestamp(data.get("created")),
            modified=parse_optional_timestamp(data.get("modified")),
            size=data.get("size"),
            content_type=data.get("contenttype"),
            hash=data.get("hash"),
            category=FileCategory(category) if category is not None else None,
            icon=data.get("icon"),
            path=data.get("path"),
            thumb=data.get("thumb", False),
            is_deleted=data.get("isdeleted", False),
            user_id=data.get("userid"),
            can_read=data.get("canread"),
            can_modify=data.get("canmodify"),
            can_delete=data.get("candelete"),
            can_create=data.get("cancreate"),
            contents=[cls.from_dict(child) for child in data.get("contents", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert Metadata to dictionary using the service's field names."""
        result = {
            "id": self.id,
            "name": self.name,
            "parentfolderid": self.parent_folder_id,
            "isfolder": self.is_folder,
            "ismine": self.is_mine,
            "isshared": self.is_shared,
            "thumb": self.thumb,
        }

        optional = {
            "folderid": self.folder_id,
            "fileid": self.file_id,
            "size": self.size,
            "contenttype": self.content_type,
            "hash": self.hash,
            "icon": self.icon,
            "path": self.path,
            "userid": self.user_id,
            "canread": self.can_read,
            "canmodify": self.can_modify,
            "candelete": self.can_delete,
            "cancreate": self.can_create,
        }
        result.update({k: v for k, v in optional.items() if v is not None})

        if self.category is not None:
            result["category"] = int(self.category)
        if self.created:
            result["created"] = format_timestamp(self.created)
        if self.modified:
            result["modified"] = format_timestamp(self.modified)
        if self.is_deleted:
            result["isdeleted"] = True
        if self.contents:
            result["contents"] = [child.to_dict() for child in self.contents]

        return result


@dataclass
class ShareInfo:
    """Share metadata attached to share events."""

    folder_id: int
    share_request_id: Optional[int] = None
    share_id: Optional[int] = None
    share_name: Optional[str] = None
    created: Optional[datetime] = None
    expires: Optional[datetime] = None
    can_read: Optional[bool] = None
    can_modify: Optional[bool] = None
    can_delete: Optional[bool] = None
    can_create: Optional[bool] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShareInfo":
        """Create ShareInfo from API response dictionary."""
        return cls(
            folder_id=data["folderid"],
            share_request_id=data.get("sharerequestid"),
            share_id=data.get("shareid"),
            share_name=data.get("sharename"),
            created=parse_optional_timestamp(data.get("created")),
            expires=parse_optional_timestamp(data.get("expires")),
            can_read=data.get("canread"),
            can_modify=data.get("canmodify"),
            can_delete=data.get("candelete"),
            can_create=data.get("cancreate"),
            message=data.get("message"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert ShareInfo to dictionary using the service's field names."""
        result = {"folderid": self.folder_id}

        optional = {
            "sharerequestid": self.share_request_id,
            "shareid": self.share_id,
            "sharename": self.share_name,
            "canread": self.can_read,
            "canmodify": self.can_modify,
            "candelete": self.can_delete,
            "cancreate": self.can_create,
            "message": self.message,
        }
        result.update({k: v for k, v in optional.items() if v is not None})

        if self.created:
            result["created"] = format_timestamp(self.created)
        if self.expires:
            result["expires"] = format_timestamp(self.expires)

        return result


@dataclass
class ChangeEvent:
    """A single entry of the account's change feed."""

    cursor: int
    timestamp: datetime
    kind: EventKind
    subject: Optional[Metadata] = None
    share: Optional[ShareInfo] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeEvent":
        """Create ChangeEvent from a diff ``entries`` item."""
        metadata = data.get("metadata")
        share = data.get("share")

        return cls(
            cursor=data["diffid"],
            timestamp=parse_timestamp(data["time"]),
            kind=EventKind(data["event"]),
            subject=Metadata.from_dict(metadata) if metadata else None,
            share=ShareInfo.from_dict(share) if share else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert ChangeEvent back to a diff ``entries`` item."""
        result = {
            "diffid": self.cursor,
            "time": format_timestamp(self.timestamp),
            "event": self.kind.value,
        }

        if self.subject is not None:
            result["metadata"] = self.subject.to_dict()
        if self.share is not None:
            result["share"] = self.share.to_dict()

        return result

    @property
    def name(self) -> Optional[str]:
        """Name of the file or folder the event targets, if any."""
        if self.subject is not None:
            return self.subject.name
        if self.share is not None:
            return self.share.share_name
        return None


@dataclass
class ChangeBatch:
    """
    Envelope returned by one diff call.

    ``high_water_cursor`` is the cursor to present on the next call. It is
    set even when ``events`` is empty.
    """

    high_water_cursor: int
    events: List[ChangeEvent] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeBatch":
        """Create ChangeBatch from API response dictionary."""
        return cls(
            high_water_cursor=data["diffid"],
            events=[ChangeEvent.from_dict(entry) for entry in data.get("entries", [])],
        )

    def __len__(self) -> int:
        return len(self.events)


@dataclass
class StreamConfig:
    """
    Parameters of a diff poll, and of a change stream built from it.

    ``start_cursor`` takes precedence over ``start_after`` when both are set.
    Blocking is only requested from the server when a cursor is known.
    """

    start_cursor: Optional[int] = None
    start_after: Optional[datetime] = None
    last_n: Optional[int] = None
    blocking: bool = False
    block_timeout: Optional[float] = None  # Seconds
    page_limit: Optional[int] = None

    def __post_init__(self):
        for name in ("start_cursor", "last_n", "page_limit"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")
        if self.block_timeout is not None and self.block_timeout <= 0:
            raise ValueError(f"block_timeout must be positive, got {self.block_timeout}")

    def with_cursor(self, cursor: Optional[int]) -> "StreamConfig":
        """
        Config for resuming from ``cursor``.

        Once a cursor is known the ``start_after`` timestamp is dropped.
        """
        if cursor is None:
            return self
        return replace(self, start_cursor=cursor, start_after=None)

    def to_params(self) -> Dict[str, Union[int, str]]:
        """Convert config to diff query parameters."""
        params = {}

        if self.start_cursor is not None:
            params["diffid"] = self.start_cursor
        elif self.start_after is not None:
            params["after"] = format_timestamp(self.start_after)
        if self.last_n is not None:
            params["last"] = self.last_n
        if self.page_limit is not None:
            params["limit"] = self.page_limit
        if self.blocking and self.start_cursor is not None:
            params["block"] = "1"

        return params

    @property
    def request_timeout(self) -> Optional[float]:
        """Network timeout for a blocking poll, None to use the client default."""
        if self.blocking and self.start_cursor is not None:
            return self.block_timeout
        return None
