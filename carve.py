"""Carve a contiguous byte range out of a file.

Usage: carve <input_file> <offset> <length> <output_filename> [-b BLOCK_SIZE]

Offsets and lengths are decimal unless prefixed with '0x'. A length of '-'
carves from the offset to the end of the input file.
"""
import argparse
import os
import re
import sys
from collections import namedtuple

DEFAULT_BLOCK_SIZE = 4096
MAX_BLOCK_SIZE = 1024 * 1024 * 1024
MAX_UINT64 = 2 ** 64 - 1
TO_END = '-'

_DEC_DIGITS = re.compile(r'[0-9]+')
_HEX_DIGITS = re.compile(r'[0-9A-Fa-f]+')

class CarveError(Exception):
    pass

class UsageError(CarveError):
    pass

class SizeProbeError(CarveError):
    pass

class ValidationError(CarveError):
    pass

class InvalidNumberError(ValidationError):
    pass

class ZeroLengthError(ValidationError):
    pass

class OffsetBeyondSizeError(ValidationError):
    pass

class RangeBeyondSizeError(ValidationError):
    pass

class EmptyRemainderError(ValidationError):
    pass

class IOOpenError(CarveError):
    pass

class SeekError(CarveError):
    pass

class TransferError(CarveError):
    def __init__(self, message, block):
        super().__init__(message)
        # block index, or 'last block' for the trailing partial block
        self.block = block

class ReadError(TransferError):
    pass

class WriteError(TransferError):
    pass

class CarveRange(namedtuple('CarveRange', ['offset', 'length', 'block_count', 'last_block_size'])):
    __slots__ = ()

    @property
    def end(self):
        return self.offset + self.length

    @property
    def reported_blocks(self):
        # a copy made only of a partial block is still shown as one block
        return self.block_count if self.block_count > 0 else 1

def probe_size(handle):
    """Return the size of an open binary file and rewind it to position 0."""
    if handle is None:
        raise SizeProbeError("cannot get input file size: no file handle")
    try:
        handle.seek(0, os.SEEK_END)
        size = handle.tell()
        handle.seek(0, os.SEEK_SET)
    except (OSError, ValueError) as e:
        raise SizeProbeError(f"cannot get input file size: {e}") from e
    if size < 0:
        raise SizeProbeError(f"cannot get input file size: invalid position {size}")
    return size

def parse_number(raw, what='value'):
    """Parse an unsigned integer, hexadecimal when prefixed with '0x'."""
    if raw.startswith('0x'):
        digits, base, pattern = raw[2:], 16, _HEX_DIGITS
    else:
        digits, base, pattern = raw, 10, _DEC_DIGITS

    if not pattern.fullmatch(digits):
        raise InvalidNumberError(f"invalid {what} '{raw}': expected a decimal number or a 0x-prefixed hex number")
    value = int(digits, base)
    if value > MAX_UINT64:
        raise InvalidNumberError(f"invalid {what} '{raw}': larger than {MAX_UINT64}")
    return value

def resolve_range(raw_offset, raw_length, source_size, block_size=DEFAULT_BLOCK_SIZE, source_name='input file'):
    """Parse offset/length arguments and check them against the source size.

    Checks run in a fixed order: zero length, offset past the end, then the
    whole range past the end.
    """
    if block_size < 1:
        raise ValueError(f"block size must be positive, got {block_size}")

    offset = parse_number(raw_offset, 'offset')

    if raw_length == TO_END:
        if offset >= source_size:
            raise EmptyRemainderError(
                f"offset 0x{offset:X} ({offset}) is at or beyond the end of '{source_name}' "
                f"({source_size} bytes), nothing to carve")
        length = source_size - offset
    else:
        length = parse_number(raw_length, 'length')

    if length == 0:
        raise ZeroLengthError("length cannot be 0!")
    if offset > source_size:
        raise OffsetBeyondSizeError(
            f"offset 0x{offset:08X} ({offset}) is larger than file '{source_name}' ({source_size} bytes)")
    if offset + length > source_size:
        raise RangeBeyondSizeError(
            f"offset 0x{offset:X} ({offset}) plus length {length} is greater than size of "
            f"'{source_name}' ({source_size} bytes long)!")

    block_count, last_block_size = divmod(length, block_size)
    return CarveRange(offset, length, block_count, last_block_size)

def seek_source(handle, offset, source_name='input file'):
    try:
        handle.seek(offset, os.SEEK_SET)
    except (OSError, ValueError) as e:
        raise SeekError(f"could not seek to offset 0x{offset:X} ({offset}) in file '{source_name}': {e}") from e

def _transfer(source, dest, chunk, block, source_name, dest_name):
    label = block if isinstance(block, str) else f"block {block}"
    size = len(chunk)

    try:
        got = source.readinto(chunk)
    except OSError as e:
        raise ReadError(f"unable to read {label} from '{source_name}': {e}", block) from e
    if got != size:
        raise ReadError(f"unable to read {label} from '{source_name}': expected {size} bytes, got {got or 0}", block)

    try:
        put = dest.write(chunk)
    except OSError as e:
        raise WriteError(f"unable to write {label} to '{dest_name}': {e}", block) from e
    if put is not None and put != size:
        raise WriteError(f"unable to write {label} to '{dest_name}': expected {size} bytes, wrote {put}", block)

def copy_range(source, dest, carve_range, block_size=DEFAULT_BLOCK_SIZE, source_name='input file',
               dest_name='output file'):
    """Copy carve_range.length bytes from the current source position to dest.

    The source must already be positioned at carve_range.offset. Any short or
    failed transfer aborts the copy; bytes already written stay in dest.
    """
    if carve_range.block_count * block_size + carve_range.last_block_size != carve_range.length:
        raise ValueError(f"range was resolved with a different block size than {block_size}")

    buf = memoryview(bytearray(block_size))
    written = 0
    for index in range(carve_range.block_count):
        _transfer(source, dest, buf, index, source_name, dest_name)
        written += block_size
    if carve_range.last_block_size > 0:
        _transfer(source, dest, buf[:carve_range.last_block_size], 'last block', source_name, dest_name)
        written += carve_range.last_block_size

    # buffered writers may only report a failed write here
    try:
        dest.flush()
    except OSError as e:
        raise WriteError(f"unable to write last block to '{dest_name}': {e}", 'last block') from e
    return written

def carve(input_path, raw_offset, raw_length, output_path, block_size=DEFAULT_BLOCK_SIZE):
    """Run one carve from input_path to output_path and return the CarveRange.

    The output file is only created once the range has been validated and the
    input has been positioned at the offset.
    """
    try:
        source = open(input_path, 'rb')
    except OSError as e:
        raise IOOpenError(f"cannot open file {input_path}: {e.strerror or e}") from e

    with source:
        size = probe_size(source)
        print(f"Size of input file {input_path} is {size} bytes")

        carve_range = resolve_range(raw_offset, raw_length, size, block_size, source_name=input_path)
        seek_source(source, carve_range.offset, input_path)

        try:
            dest = open(output_path, 'w+b')
        except OSError as e:
            raise IOOpenError(f"could not create output file '{output_path}': {e.strerror or e}") from e

        try:
            with dest:
                copy_range(source, dest, carve_range, block_size, input_path, output_path)
        except OSError as e:
            raise WriteError(f"unable to write last block to '{output_path}': {e}", 'last block') from e

    print(f"{carve_range.length} bytes ({carve_range.reported_blocks} blocks) carved from offset "
          f"0x{carve_range.offset:X} in file '{input_path}' and written to file '{output_path}'")
    return carve_range

def print_usage():
    print("Usage: carve <input_file> <offset> <length> <output_filename> [-b BLOCK_SIZE]")
    print("Offsets and lengths may be specified in hexadecimal by using '0x' in front of the offset.")
    print("Values which do not begin with '0x' will be interpreted as decimal.")
    print("If length is specified as '-' the amount carved will be the remainder of the file from the offset to the end.")
    print(f"The optional block size goes after the output filename (default {DEFAULT_BLOCK_SIZE} bytes).")

def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    # missing arguments print usage and still exit 0
    if len(argv) < 4:
        print_usage()
        return 0

    # the four positionals are taken as-is, so file names may start with '-'
    input_file, offset, length, output_filename = argv[:4]

    parser = argparse.ArgumentParser(prog='carve', add_help=False)
    parser.add_argument('-b', '--block-size', default=str(DEFAULT_BLOCK_SIZE))
    # anything else after the output filename is ignored
    args, _ = parser.parse_known_args(argv[4:])

    try:
        block_size = parse_number(args.block_size, 'block size')
        if not 0 < block_size <= MAX_BLOCK_SIZE:
            raise UsageError(f"block size must be between 1 and {MAX_BLOCK_SIZE} bytes, got {block_size}")
        carve(input_file, offset, length, output_filename, block_size)
    except CarveError as e:
        print(f"Error: {e}")
        return 1
    return 0

if __name__ == '__main__':
    sys.exit(main())
