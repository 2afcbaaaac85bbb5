import logging
import threading
import time

from chip8vm.exception import Chip8Exception

logger = logging.getLogger(__name__)

# The number of frames to run per second
FRAMES_PER_SECOND = 60

# The number of instructions to execute per frame
STEPS_PER_FRAME = 12


class SystemClock(object):
    """
    The wall clock, as seen by the scheduler.
    """
    @staticmethod
    def now():
        return time.monotonic()

    @staticmethod
    def sleep(seconds):
        if seconds > 0:
            time.sleep(seconds)


class Scheduler(object):
    """
    Drives an emulator at a fixed frame rate. Each frame either polls the
    keypad for the key a waiting CPU asked for, or runs a fixed number of
    instructions with a keypad latch after each of them and renders the
    screen once. The delay and sound timers count down once per frame in
    both cases.

    The clock is injectable: anything with now() returning seconds and
    sleep(seconds) will do. Tests usually call tick() directly instead.
    """
    def __init__(self, emulator, clock=None, frames_per_second=FRAMES_PER_SECOND,
                 steps_per_frame=STEPS_PER_FRAME, on_frame=None):
        """
        :param emulator: the Chip8 emulator to drive
        :param clock: the clock to pace frames with, SystemClock by default
        :param frames_per_second: the number of ticks per second
        :param steps_per_frame: the number of instructions per tick
        :param on_frame: called with no arguments before every tick
        """
        self.emulator = emulator
        self.clock = clock or SystemClock()
        self.frame_interval = 1.0 / frames_per_second
        self.steps_per_frame = steps_per_frame
        self.on_frame = on_frame
        self.running = False
        self.thread = None
        self.frames = 0

    def tick(self):
        """
        Run a single frame. A frame that faults renders what was drawn so far
        and halts the emulator before the timers count down; from then on
        ticks do nothing, so the delay and sound timers stay frozen until the
        next reset or ROM load.

        :return: False if a fault stopped the emulator during this frame
        """
        emulator = self.emulator
        with emulator.lock:
            if not emulator.active:
                return True
            cpu = emulator.cpu
            keypad = emulator.keypad

            if not cpu.running:
                keypad.latch()
                key = keypad.active_key()
                if key is not None:
                    cpu.resolve_key(key)
            else:
                try:
                    for _ in range(self.steps_per_frame):
                        cpu.step()
                        keypad.latch()
                        if not cpu.running:
                            break
                except Chip8Exception as error:
                    emulator.halt(error)
                    return False
                finally:
                    emulator.screen.render(emulator.display)

            cpu.decrement_timers()
            self.frames += 1
        return True

    def run(self):
        """
        Run frames on the calling thread until stop() is called.
        """
        self.running = True
        self.loop()

    def loop(self):
        next_frame = self.clock.now()
        logger.debug("Scheduler started at %.1f frames per second", 1.0 / self.frame_interval)
        while self.running:
            if self.on_frame is not None:
                self.on_frame()
            if not self.running:
                break
            self.tick()
            next_frame += self.frame_interval
            delay = next_frame - self.clock.now()
            if delay < -self.frame_interval:
                # Too far behind to catch up; restart the cadence from now.
                next_frame = self.clock.now()
            self.clock.sleep(delay)
        logger.debug("Scheduler stopped after %d frames", self.frames)

    def start(self):
        """
        Run frames on a background thread.
        """
        if self.thread is not None and self.thread.is_alive():
            return
        self.running = True
        self.thread = threading.Thread(target=self.loop, name='chip8-scheduler')
        self.thread.daemon = True
        self.thread.start()

    def stop(self):
        """
        Stop running frames after the current one. Waits for the background
        thread, if there is one.
        """
        self.running = False
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join()
        self.thread = None
