"""
A Chip 8 emulator: the CPU, memory, screen and keypad of the Chip 8 virtual
machine, a frame scheduler that drives them, and pygame adapters for video,
sound and keyboard input.
"""
from chip8vm.emulator import Chip8
from chip8vm.exception import (
    Chip8Exception,
    MemoryOutOfBoundsException,
    RomLoadException,
    StackOverflowException,
    StackUnderflowException,
    UnknownOpCodeException,
)

__all__ = [
    'Chip8',
    'Chip8Exception',
    'MemoryOutOfBoundsException',
    'RomLoadException',
    'StackOverflowException',
    'StackUnderflowException',
    'UnknownOpCodeException',
]
