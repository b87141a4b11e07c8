"""
programs - Example programs built on the record lifecycle

Each module defines its record layouts, a versioned InstructionSet, the handlers,
client-side instruction builders and a create_*_program(config) factory.
"""

from . import counter, memo, note, token_metadata, vault

from .counter import create_counter_program
from .memo import create_memo_program
from .note import create_note_program
from .token_metadata import create_token_metadata_program
from .vault import create_vault_program
