class Chip8Exception(Exception):
    """
    Base class for every condition the emulator reports instead of crashing
    the host process.
    """


class UnknownOpCodeException(Chip8Exception):
    """
    A class to raise unknown op code exceptions.
    """
    def __init__(self, op_code, address=None):
        Chip8Exception.__init__(self, op_code)
        self.op_code = op_code
        self.address = address

    def __str__(self):
        if self.address is None:
            return "Unknown op-code: {:04X}".format(self.op_code)
        return "Unknown op-code: {:04X} at {:04X}".format(self.op_code, self.address)


class StackUnderflowException(Chip8Exception):
    """
    Raised when a subroutine returns while the call stack is empty.
    """
    def __init__(self):
        Chip8Exception.__init__(self, "Return with an empty call stack")


class StackOverflowException(Chip8Exception):
    """
    Raised when a subroutine call would exceed the configured stack depth.
    """
    def __init__(self, depth):
        self.depth = depth
        Chip8Exception.__init__(
            self, "Call stack overflow (depth {})".format(depth))


class MemoryOutOfBoundsException(Chip8Exception):
    """
    Raised when an address falls outside the backing memory.
    """
    def __init__(self, address, size):
        self.address = address
        self.size = size
        Chip8Exception.__init__(
            self, "Address {:04X} outside memory of {} bytes".format(address, size))


class RomLoadException(Chip8Exception):
    """
    Raised when a ROM image cannot be read or does not fit in memory.
    """
