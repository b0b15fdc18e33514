"""Protocol constants shared by every write."""
from enum import Enum


class ObjectType(str, Enum):
    VAULT = "Vault"
    MEMBERSHIP = "Membership"
    NOTE = "Note"


class Status(str, Enum):
    PENDING = "PENDING"
    INVITED = "INVITED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    REVOKED = "REVOKED"
    LEFT = "LEFT"
    ACTIVE = "ACTIVE"


class Role(str, Enum):
    OWNER = "OWNER"
    CONTRIBUTOR = "CONTRIBUTOR"
    VIEWER = "VIEWER"


class ActionRef(str, Enum):
    VAULT_CREATE = "VAULT_CREATE"
    MEMBERSHIP_INVITE = "MEMBERSHIP_INVITE"
    MEMBERSHIP_AIRDROP = "MEMBERSHIP_AIRDROP"
    MEMBERSHIP_ACCEPT = "MEMBERSHIP_ACCEPT"
    MEMBERSHIP_CONFIRM = "MEMBERSHIP_CONFIRM"
    MEMBERSHIP_REVOKE = "MEMBERSHIP_REVOKE"
    MEMBERSHIP_REJECT = "MEMBERSHIP_REJECT"
    MEMBERSHIP_LEAVE = "MEMBERSHIP_LEAVE"
    MEMBERSHIP_CHANGE_ROLE = "MEMBERSHIP_CHANGE_ACCESS"
    MEMBERSHIP_PROFILE_UPDATE = "MEMBERSHIP_PROFILE_UPDATE"


class Function(str, Enum):
    VAULT_CREATE = "vault:init"
    VAULT_UPDATE = "vault:update"
    MEMBERSHIP_INVITE = "membership:invite"
    MEMBERSHIP_ACCEPT = "membership:accept"
    MEMBERSHIP_REVOKE = "membership:revoke"
    MEMBERSHIP_REJECT = "membership:reject"
    MEMBERSHIP_CHANGE_ROLE = "membership:change-role"
    MEMBERSHIP_UPDATE = "membership:update"
    MEMBERSHIP_ADD = "membership:add"


class ProtocolTags(str, Enum):
    CLIENT_NAME = "Client-Name"
    PROTOCOL_NAME = "Protocol-Name"
    PROTOCOL_VERSION = "Protocol-Version"
    TIMESTAMP = "Timestamp"
    FUNCTION_NAME = "Function-Name"
    VAULT_ID = "Vault-Id"
    MEMBERSHIP_ID = "Membership-Id"
    NODE_TYPE = "Node-Type"
    NODE_ID = "Node-Id"
    PUBLIC = "Public"
    ACTION_REF = "Action-Ref"
    GROUP_REF = "Group-Ref"
    SIGNER_ADDRESS = "Signer-Address"
    SIGNATURE = "Signature"
    MEMBER_ADDRESS = "Member-Address"


class DataTags(str, Enum):
    DATA_TYPE = "Data-Type"
    CONTENT_TYPE = "Content-Type"


class EncryptionTags(str, Enum):
    IV = "Initialization-Vector"
    ENCRYPTED_KEY = "Encrypted-Key"
    PUBLIC_ADDRESS = "Public-Address"


TOPIC_TAG = "Topic"

STATE_CONTENT_TYPE = "application/json"

# memberships that hold a usable key-epoch
ACTIVE_STATUSES = (Status.ACCEPTED, Status.PENDING)
