"""
processor.py - Instruction dispatch

A Program binds a ProgramConfig to an InstructionSet and one handler per variant.
process() resolves the discriminator, decodes the arguments strictly, then calls the
handler with a fresh AccountLifecycleManager.
"""

from __future__ import annotations
from typing import Callable, Dict, Mapping, Sequence, TYPE_CHECKING

from solders.pubkey import Pubkey

from .codec import InstructionSet
from .config import ProgramConfig
from .core import AccountMeta, Instruction, Payload, IncorrectProgramId
from .lifecycle import AccountLifecycleManager

if TYPE_CHECKING:
    from .ledger import InvokeContext


# handler(ctx, manager, args)
Handler = Callable[['InvokeContext', AccountLifecycleManager, Payload], None]


class Program:
    """
    A deployed program: configuration, instruction set and handler table.

    The handler table must cover exactly the instruction set's variants.
    """

    def __init__(
        self,
        config: ProgramConfig,
        instructions: InstructionSet,
        handlers: Mapping[str, Handler],
    ):
        expected = set(instructions.names)
        missing = expected - set(handlers)
        extra = set(handlers) - expected
        if missing or extra:
            raise ValueError(
                f"{instructions.name}: handlers missing {sorted(missing)}, unexpected {sorted(extra)}"
            )
        self.config = config
        self.instructions = instructions
        self.handlers: Dict[str, Handler] = dict(handlers)

    @property
    def program_id(self) -> Pubkey:
        return self.config.program_id

    @property
    def name(self) -> str:
        return self.instructions.name

    @property
    def version(self) -> int:
        return self.instructions.version

    def process(self, ctx: InvokeContext, data: bytes) -> None:
        """
        Decode and run one instruction.

        Raises:
            IncorrectProgramId: If the instruction is addressed to another program.
            InvalidInstruction / UnknownDiscriminator: On malformed data.
            ProgramError: Whatever the handler raises.
        """
        if ctx.program_id != self.program_id:
            raise IncorrectProgramId(f"{self.name} is {self.program_id}, not {ctx.program_id}")
        decoded = self.instructions.decode(data)
        ctx.log(f"Instruction: {decoded.name}")
        manager = AccountLifecycleManager(ctx, self.config)
        self.handlers[decoded.name](ctx, manager, decoded.args)

    def __repr__(self) -> str:
        return f"Program({self.name} v{self.version} at {self.program_id})"


# ============================================================================
# CLIENT HELPERS
# ============================================================================

def signer(pubkey: Pubkey, writable: bool = True) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=True, is_writable=writable)


def writable(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=True)


def readonly(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=False)


def build_instruction(
    program_id: Pubkey,
    instructions: InstructionSet,
    name: str,
    accounts: Sequence[AccountMeta],
    /,
    **args,
) -> Instruction:
    """Encode the named variant and wrap it in an Instruction."""
    return Instruction(
        program_id=program_id,
        accounts=tuple(accounts),
        data=instructions.encode(name, **args),
    )
