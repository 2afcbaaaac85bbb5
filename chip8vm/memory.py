from chip8vm.exception import MemoryOutOfBoundsException

# The total amount of memory to allocate for the emulator, past the classic
# 4 KiB so the index register can address above 0xFFF
MEMORY_SIZE = 7096


class Memory(object):
    """
    A flat, byte addressable store. The capacity is fixed when the memory is
    created; every access outside of it raises MemoryOutOfBoundsException.
    Multi-byte accesses are checked as a whole before anything is read or
    written, so a failing access never leaves a partial write behind.
    """
    def __init__(self, size=MEMORY_SIZE):
        """
        :param size: the number of bytes of backing storage
        """
        self.size = size
        self.buffer = bytearray(size)

    def __len__(self):
        return self.size

    def reset(self):
        """
        Blank out the memory buffer.
        """
        self.buffer = bytearray(self.size)

    def check_range(self, address, length=1):
        """
        Make sure that the addresses address .. address + length - 1 are all
        backed by memory.

        :param address: the first address to check
        :param length: the number of consecutive bytes to check
        """
        if address < 0 or address >= self.size:
            raise MemoryOutOfBoundsException(address, self.size)
        if length > 0 and address + length > self.size:
            raise MemoryOutOfBoundsException(address + length - 1, self.size)

    def write_byte(self, address, value):
        self.check_range(address)
        self.buffer[address] = value & 0xFF

    def write_bytes(self, address, values):
        """
        Write a sequence of byte values starting at the specified address.

        :param address: the address of the first byte
        :param values: an iterable of integers, masked to 8 bits each
        """
        values = bytes(value & 0xFF for value in values)
        if not values:
            return
        self.check_range(address, len(values))
        self.buffer[address:address + len(values)] = values

    def read_byte(self, address):
        self.check_range(address)
        return self.buffer[address]

    def read_bytes(self, address, length):
        if length <= 0:
            return b''
        self.check_range(address, length)
        return bytes(self.buffer[address:address + length])

    def read_word(self, address):
        """
        Read the 16-bit big-endian value stored at address and address + 1.

        :param address: the address of the most significant byte
        :return: the 16-bit value
        """
        self.check_range(address, 2)
        return self.buffer[address] << 8 | self.buffer[address + 1]
