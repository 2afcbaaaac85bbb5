import logging
import threading

from chip8vm.cpu import CPU, PROGRAM_COUNTER_START, STACK_DEPTH
from chip8vm.exception import MemoryOutOfBoundsException, RomLoadException
from chip8vm.keypad import Keypad
from chip8vm.memory import MEMORY_SIZE, Memory
from chip8vm.scheduler import FRAMES_PER_SECOND, STEPS_PER_FRAME, Scheduler
from chip8vm.screen import Screen
from chip8vm.sound import SilentSound

logger = logging.getLogger(__name__)


class Chip8(object):
    """
    The emulator context. It owns the memory, screen, keypad and CPU, the
    render and audio sinks they talk to, and the scheduler that runs them.

    A freshly constructed or reset emulator is inactive: the scheduler keeps
    ticking but nothing executes until a ROM is loaded.
    """
    def __init__(self, display=None, sound=None, clock=None,
                 memory_size=MEMORY_SIZE, stack_depth=STACK_DEPTH,
                 frames_per_second=FRAMES_PER_SECOND,
                 steps_per_frame=STEPS_PER_FRAME, random_source=None):
        """
        :param display: the render sink, an object with a draw(pixels) method
        :param sound: the audio sink, SilentSound by default
        :param clock: the clock the scheduler paces frames with
        :param memory_size: the number of bytes of memory
        :param stack_depth: the maximum number of nested subroutine calls
        :param frames_per_second: the number of frames per second
        :param steps_per_frame: the number of instructions per frame
        :param random_source: a callable returning a random byte
        """
        self.lock = threading.RLock()
        self.display = display
        self.sound = sound if sound is not None else SilentSound()
        self.memory = Memory(memory_size)
        self.screen = Screen()
        self.keypad = Keypad()

        cpu_options = {'stack_depth': stack_depth}
        if random_source is not None:
            cpu_options['random_source'] = random_source
        self.cpu = CPU(self.memory, self.screen, self.keypad, self.sound, **cpu_options)

        self.scheduler = Scheduler(
            self, clock=clock, frames_per_second=frames_per_second,
            steps_per_frame=steps_per_frame)
        self.active = False
        self.fault = None
        self.reset()

    def reset(self):
        """
        Blank out memory, registers and the screen, write the digit sprites
        back into memory and stop executing.
        """
        with self.lock:
            self.memory.reset()
            self.screen.write_sprites_to_memory(self.memory)
            self.screen.clear_screen()
            self.keypad.reset()
            self.sound.stop()
            self.cpu.reset()
            self.active = False
            self.fault = None
        logger.info("Emulator reset")

    def load_rom(self, data):
        """
        Reset the emulator, install the ROM image at the program start address
        and start executing it.

        :param data: the raw bytes of the ROM
        """
        with self.lock:
            self.reset()
            try:
                self.memory.write_bytes(PROGRAM_COUNTER_START, data)
            except MemoryOutOfBoundsException as error:
                raise RomLoadException(
                    "ROM of {} bytes does not fit in memory: {}".format(len(data), error))
            self.active = True
        logger.info("Loaded ROM of %d bytes", len(data))

    def load_rom_file(self, filename):
        """
        Load the ROM indicated by the filename into memory.

        :param filename: the name of the file to load
        """
        try:
            with open(filename, 'rb') as rom_file:
                data = rom_file.read()
        except OSError as error:
            raise RomLoadException("Cannot read ROM {}: {}".format(filename, error))
        logger.info("Read ROM %s", filename)
        self.load_rom(data)

    def halt(self, error):
        """
        Stop executing after a fault, keeping the fault for the caller.

        :param error: the Chip8Exception that stopped the CPU
        """
        with self.lock:
            self.fault = error
            self.active = False
        logger.error("Emulator halted: %s\n%s", error, self.cpu)

    def tick(self):
        return self.scheduler.tick()

    def run(self):
        self.scheduler.run()

    def start(self):
        self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    def press_key(self, key):
        self.keypad.set_key(key, True)

    def release_key(self, key):
        self.keypad.set_key(key, False)

    def mute(self):
        self.sound.mute()

    def unmute(self):
        self.sound.unmute()

    def set_volume(self, level):
        self.sound.set_volume(level)
