"""
MCMS Constants

This module consolidates the protocol constants shared by every chain family
and the environment-driven logging defaults. Constants are organized by
category for easy reference.
"""
import ast

from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW ARE MIRRORED BY THE ON-CHAIN CONTRACTS. CHANGING ANY OF THEM
# PRODUCES HASHES, CONFIGS OR SIGNATURES THAT THE DEPLOYED CONTRACTS WILL REJECT.

# ==================================================================================
# QUORUM CONFIGURATION LIMITS
# ==================================================================================
NUM_GROUPS = 32  # Fixed size of the on-chain group arrays
MAX_GROUP_INDEX = NUM_GROUPS - 1
EVM_MAX_SIGNERS = 255
SOLANA_MAX_SIGNERS = 180
CANTON_MAX_SIGNERS = 255


# ==================================================================================
# DOMAIN SEPARATORS (pre-image strings, hashed with keccak256 at import time)
# ==================================================================================
EVM_OP_DOMAIN_SEPARATOR_TEXT = b"MANY_CHAIN_MULTI_SIG_DOMAIN_SEPARATOR_OP"
EVM_METADATA_DOMAIN_SEPARATOR_TEXT = b"MANY_CHAIN_MULTI_SIG_DOMAIN_SEPARATOR_METADATA"
SOLANA_OP_DOMAIN_SEPARATOR_TEXT = b"MANY_CHAIN_MULTI_SIG_DOMAIN_SEPARATOR_OP_SOLANA"
SOLANA_METADATA_DOMAIN_SEPARATOR_TEXT = b"MANY_CHAIN_MULTI_SIG_DOMAIN_SEPARATOR_METADATA_SOLANA"


# ==================================================================================
# SIGNING
# ==================================================================================
ETH_SIGNED_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"
SIGNATURE_V_THRESHOLD = 2
SIGNATURE_V_OFFSET = 27
ZERO_HASH = b"\x00" * 32


# ==================================================================================
# CHAIN PARAMETERS
# ==================================================================================
SIMULATED_EVM_CHAIN_ID = 1337
SOLANA_APPEND_SIGNERS_BATCH_SIZE = 45
SOLANA_APPEND_SIGNATURES_BATCH_SIZE = 13
SOLANA_SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
CANTON_MCMS_TEMPLATE_KEY = "MCMS.Main:MCMS"
CANTON_SELF_TARGET = "self"


# ==================================================================================
# PROPOSAL DEFAULTS
# ==================================================================================
PROPOSAL_VERSION = "v1"
DEFAULT_VALID_FOR_SECONDS = 72 * 3600


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Only known literals reach ast.literal_eval.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
