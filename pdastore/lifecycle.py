"""
lifecycle.py - Record lifecycle state machine

    Uninitialized --create--> Active --close--> Closed
                              |    ^
                              +----+ update / resize / mutate

Create is the only transition out of Uninitialized and Close is the only transition
into Closed. Every mutating operation (except mutate) consults the authorization
guard before it writes, and finishes all of its checks before the first byte or
lamport moves.

The manager is bound to one InvokeContext (one instruction) and one ProgramConfig.
Lamports only move through the context's checked transfer primitive.
"""

from __future__ import annotations
from typing import Callable, Optional, TYPE_CHECKING

from solders.pubkey import Pubkey

from .address import derive
from .auth import require_authority, require_fixed_authority
from .codec import RecordLayout
from .config import ProgramConfig
from .core import (
    Account, Payload, SeedSet, RecordStatus,
    MAX_PERMITTED_DATA_INCREASE, MAX_PERMITTED_DATA_LENGTH,
    AddressMismatch, AlreadyInitialized, DataTooLarge, IncorrectProgramId,
    InsufficientRent, InvalidArgument, InvalidRealloc, MissingRequiredSignature,
    NotRentExempt, UninitializedAccount,
)
from .rent import Rent

if TYPE_CHECKING:
    from .ledger import InvokeContext


class AccountLifecycleManager:
    """
    Create, update, resize and close program-owned records.

    Example:
        manager = AccountLifecycleManager(ctx, config)
        manager.create(note_address, seeds, NOTE, payload, funder=user)
        manager.update(note_address, NOTE, new_payload, caller=user)
        manager.close(note_address, NOTE, caller=user, receiver=user)
    """

    def __init__(self, ctx: InvokeContext, config: ProgramConfig):
        if ctx.program_id != config.program_id:
            raise IncorrectProgramId(
                f"context runs {ctx.program_id}, config is for {config.program_id}"
            )
        self.ctx = ctx
        self.config = config

    @property
    def program_id(self) -> Pubkey:
        return self.config.program_id

    @property
    def rent(self) -> Rent:
        return self.config.rent

    # ========================================================================
    # ADDRESS CHECKS
    # ========================================================================

    def check_address(self, address: Pubkey, seeds: SeedSet) -> int:
        """
        Re-derive the address from seeds and compare with the supplied one.

        Returns:
            The canonical bump.

        Raises:
            AddressMismatch: If the supplied address is not the derived address.
        """
        derived, bump = derive(seeds, self.program_id)
        if derived != address:
            raise AddressMismatch(f"expected {derived}, got {address}")
        return bump

    # ========================================================================
    # READ
    # ========================================================================

    def _active(self, address: Pubkey) -> Account:
        account = self.ctx.get_account(address)
        if account is None:
            raise UninitializedAccount(f"no record at {address}")
        if account.owner != self.program_id:
            raise IncorrectProgramId(f"{address} is owned by {account.owner}")
        if account.status != RecordStatus.ACTIVE:
            raise UninitializedAccount(f"record at {address} is {account.status.value}")
        return account

    def load(self, address: Pubkey, layout: RecordLayout) -> Payload:
        """
        Decode the active record at address.

        Raises:
            UninitializedAccount: If no active record exists at address.
            IncorrectProgramId: If the account belongs to another program.
            DecodeError: If the stored bytes do not match layout.
        """
        account = self._active(address)
        return layout.decode(account.data, allow_padding=True)

    # ========================================================================
    # TRANSITIONS
    # ========================================================================

    def create(
        self,
        address: Pubkey,
        seeds: SeedSet,
        layout: RecordLayout,
        payload: Payload,
        funder: Pubkey,
        space: Optional[int] = None,
        lamports: Optional[int] = None,
    ) -> Account:
        """
        Allocate, fund and initialize a record at the derived address.

        Args:
            address: Caller-supplied address, checked against derive(seeds).
            seeds: Seeds used at creation and by every later caller.
            layout: Record schema.
            payload: Initial record contents.
            funder: Signer paying the rent-exempt balance, less any lamports a
                plain wallet already holds at address.
            space: Allocate this many bytes instead of the exact encoded size.
            lamports: Fund with this balance instead of the minimum (must be exempt).

        Raises:
            AddressMismatch: If address is not derived from seeds.
            AlreadyInitialized: If a record (or any non-wallet account) exists at address.
            MissingRequiredSignature: If funder did not sign.
            DataTooLarge: If space is smaller than the encoded payload.
            NotRentExempt: If explicit lamports are below the minimum.
            InsufficientRent: If funder cannot cover the balance.
        """
        self.check_address(address, seeds)
        existing = self.ctx.get_account(address)
        if existing is not None and not existing.is_bare_wallet:
            raise AlreadyInitialized(f"record at {address} already exists")
        if not self.ctx.is_signer(funder):
            raise MissingRequiredSignature(f"funder {funder} must sign")

        data = layout.encode(payload)
        byte_length = len(data) if space is None else space
        if byte_length < len(data):
            raise DataTooLarge(f"{layout.name} needs {len(data)} bytes, space is {byte_length}")

        required = self.rent.minimum_balance(byte_length)
        if lamports is None:
            lamports = required
        elif lamports < required:
            raise NotRentExempt(f"{lamports} lamports < {required} required for {byte_length} bytes")
        # Lamports already parked at the address count toward the balance
        prefunded = existing.lamports if existing is not None else 0
        top_up = max(0, lamports - prefunded)
        available = self.ctx.get_balance(funder)
        if available < top_up:
            raise InsufficientRent(f"funder {funder} holds {available} < {top_up} lamports")

        account = self.ctx.create_account(address, self.program_id, byte_length, seeds=seeds)
        self.ctx.transfer(funder, address, top_up)
        account.data[:len(data)] = data
        account.is_initialized = True
        self.ctx.log(f"created {layout.name} at {address} ({byte_length} bytes, {account.lamports} lamports)")
        return account

    def update(
        self,
        address: Pubkey,
        layout: RecordLayout,
        new_payload: Payload,
        caller: Pubkey,
        allow_resize: bool = False,
        funder: Optional[Pubkey] = None,
    ) -> Account:
        """
        Replace the payload of an active record.

        Without allow_resize the new encoding must fit the current allocation.
        With allow_resize the record is first resized to the exact encoded size;
        funder tops up growth and receives the excess on shrink.

        Raises:
            UninitializedAccount: If the record is not active.
            Unauthorized: If caller is not the signing authority, or new_payload
                names a different authority.
            DataTooLarge: If the payload does not fit and resizing is not allowed.
        """
        account = self._active(address)
        current = layout.decode(account.data, allow_padding=True)
        require_authority(current, caller, self.ctx.signers, layout.authority_field)
        require_fixed_authority(current, new_payload, layout.authority_field)

        data = layout.encode(new_payload)
        if allow_resize:
            if len(data) != account.byte_length:
                self._realloc(account, len(data), funder, refund_to=funder)
        elif len(data) > account.byte_length:
            raise DataTooLarge(
                f"{layout.name} needs {len(data)} bytes, {account.byte_length} allocated"
            )

        self._write(account, data)
        self.ctx.log(f"updated {layout.name} at {address}")
        return account

    def resize(
        self,
        address: Pubkey,
        layout: RecordLayout,
        new_byte_length: int,
        caller: Pubkey,
        funder: Pubkey,
        refund_to: Optional[Pubkey] = None,
    ) -> Account:
        """
        Change an active record's allocation.

        Growth is funded by funder up to the new rent-exempt minimum. Shrinking
        refunds the balance above the new minimum to refund_to (default: funder).

        Raises:
            UninitializedAccount: If the record is not active.
            Unauthorized: If caller is not the signing authority.
            DataTooLarge: If new_byte_length cannot hold the current payload.
            InvalidRealloc: If the change exceeds the size limits.
            InsufficientRent: If funder cannot cover the growth.
        """
        account = self._active(address)
        current = layout.decode(account.data, allow_padding=True)
        require_authority(current, caller, self.ctx.signers, layout.authority_field)

        needed = layout.encoded_size(current)
        if new_byte_length < needed:
            raise DataTooLarge(
                f"{layout.name} payload needs {needed} bytes, cannot resize to {new_byte_length}"
            )
        self._realloc(account, new_byte_length, funder, refund_to=refund_to or funder)
        return account

    def close(
        self,
        address: Pubkey,
        layout: RecordLayout,
        caller: Pubkey,
        receiver: Pubkey,
    ) -> int:
        """
        Zero an active record and move its entire balance to receiver.

        Returns:
            Lamports moved to receiver.

        Raises:
            UninitializedAccount: If the record is not active.
            Unauthorized: If caller is not the signing authority.
            InvalidArgument: If receiver is the record itself.
            ArithmeticOverflow: If receiver's balance would leave the u64 range.
        """
        account = self._active(address)
        current = layout.decode(account.data, allow_padding=True)
        require_authority(current, caller, self.ctx.signers, layout.authority_field)
        if receiver == address:
            raise InvalidArgument("a record cannot be closed into itself")

        refund = account.lamports
        self.ctx.transfer(address, receiver, refund)
        account.data[:] = bytes(account.byte_length)
        account.closed = True
        self.ctx.log(f"closed {layout.name} at {address}, {refund} lamports to {receiver}")
        return refund

    def mutate(
        self,
        address: Pubkey,
        layout: RecordLayout,
        fn: Callable[[Payload], Payload],
    ) -> Payload:
        """
        Load, transform and store an active record in place.

        No authorization is implied; callers gate the operation themselves. fn may
        change any field except the authority.

        Raises:
            UninitializedAccount: If the record is not active.
            Unauthorized: If fn reassigns the authority.
            DataTooLarge: If the transformed payload no longer fits.
        """
        account = self._active(address)
        current = layout.decode(account.data, allow_padding=True)
        updated = fn(dict(current))
        require_fixed_authority(current, updated, layout.authority_field)
        data = layout.encode(updated)
        if len(data) > account.byte_length:
            raise DataTooLarge(
                f"{layout.name} needs {len(data)} bytes, {account.byte_length} allocated"
            )
        self._write(account, data)
        return updated

    # ========================================================================
    # INTERNAL
    # ========================================================================

    @staticmethod
    def _write(account: Account, data: bytes) -> None:
        account.data[:] = bytes(account.byte_length)
        account.data[:len(data)] = data

    def _realloc(
        self,
        account: Account,
        new_byte_length: int,
        funder: Optional[Pubkey],
        refund_to: Optional[Pubkey],
    ) -> None:
        old_byte_length = account.byte_length
        if new_byte_length > MAX_PERMITTED_DATA_LENGTH:
            raise InvalidRealloc(f"{new_byte_length} bytes exceeds {MAX_PERMITTED_DATA_LENGTH}")
        if new_byte_length - old_byte_length > MAX_PERMITTED_DATA_INCREASE:
            raise InvalidRealloc(
                f"growing by {new_byte_length - old_byte_length} bytes exceeds {MAX_PERMITTED_DATA_INCREASE}"
            )

        required = self.rent.minimum_balance(new_byte_length)
        if account.lamports < required:
            shortfall = required - account.lamports
            if funder is None or self.ctx.get_balance(funder) < shortfall:
                raise InsufficientRent(
                    f"resize to {new_byte_length} bytes needs {shortfall} more lamports"
                )
            self.ctx.transfer(funder, account.address, shortfall)
        elif new_byte_length < old_byte_length and account.lamports > required and refund_to is not None:
            self.ctx.transfer(account.address, refund_to, account.lamports - required)

        if new_byte_length > old_byte_length:
            account.data.extend(bytes(new_byte_length - old_byte_length))
        else:
            del account.data[new_byte_length:]
        self.ctx.log(f"resized {account.address} from {old_byte_length} to {new_byte_length} bytes")
