import argparse
import logging
import sys

import pygame

from chip8vm.display import PygameDisplay
from chip8vm.emulator import Chip8
from chip8vm.exception import RomLoadException
from chip8vm.keypad import KeyMap
from chip8vm.scheduler import STEPS_PER_FRAME
from chip8vm.sound import DEFAULT_VOLUME, PygameSound, SilentSound

logger = logging.getLogger(__name__)

# Host keys that control the emulator rather than the Chip 8 keypad
QUIT_KEY = pygame.K_ESCAPE
RESET_KEY = pygame.K_F5
MUTE_KEY = pygame.K_F9


def window_caption(rom_filename, fault=None):
    caption = "CHIP8 Emulator - {}".format(rom_filename)
    if fault is not None:
        caption += " - halted: {}".format(fault)
    return caption


def pygame_key_map():
    """
    Returns the default key map, translated to pygame key codes.
    """
    layout = KeyMap().layout
    return KeyMap(dict((key, pygame.key.key_code(name)) for key, name in layout.items()))


class EventPump(object):
    """
    Feeds pygame events to the emulator. Called by the scheduler before every
    frame, on the main thread, as pygame requires.
    """
    def __init__(self, emulator, key_map, rom_filename):
        self.emulator = emulator
        self.key_map = key_map
        self.rom_filename = rom_filename
        self.muted = False
        self.shown_fault = None

    def __call__(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.emulator.stop()
            elif event.type == pygame.KEYDOWN:
                self.key_down(event.key)
            elif event.type == pygame.KEYUP and event.key in self.key_map:
                self.emulator.release_key(self.key_map.get(event.key))
        self.show_fault()

    def show_fault(self):
        """
        Puts the fault that halted the emulator in the window caption, and
        takes it out again once a reset clears it.
        """
        fault = self.emulator.fault
        if fault is not self.shown_fault:
            self.shown_fault = fault
            pygame.display.set_caption(window_caption(self.rom_filename, fault))

    def key_down(self, key):
        if key == QUIT_KEY:
            self.emulator.stop()
        elif key == RESET_KEY:
            try:
                self.emulator.load_rom_file(self.rom_filename)
            except RomLoadException as error:
                logger.error("%s", error)
        elif key == MUTE_KEY:
            self.muted = not self.muted
            if self.muted:
                self.emulator.mute()
            else:
                self.emulator.unmute()
        elif key in self.key_map:
            self.emulator.press_key(self.key_map.get(key))


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="Starts a simple Chip 8 emulator")
    parser.add_argument(
        "rom", help="the ROM file to load on startup")
    parser.add_argument(
        "-s", "--scale", help="the scale factor to apply to the display "
                              "(default is 8)", type=int, default=8, dest="scale")
    parser.add_argument(
        "-f", "--steps-per-frame", help="the number of instructions to execute "
                                        "per frame (default is {})".format(STEPS_PER_FRAME),
        type=int, default=STEPS_PER_FRAME, dest="steps_per_frame")
    parser.add_argument(
        "-m", "--mute", help="start with the sound muted",
        action="store_true", dest="mute")
    parser.add_argument(
        "--volume", help="the tone volume between 0.0 and 1.0 "
                         "(default is {})".format(DEFAULT_VOLUME),
        type=float, default=DEFAULT_VOLUME, dest="volume")
    parser.add_argument(
        "--no-sound", help="do not open an audio device",
        action="store_true", dest="no_sound")
    parser.add_argument(
        "-v", "--verbose", help="log more; repeat to trace every instruction",
        action="count", default=0, dest="verbose")
    return parser.parse_args(argv)


def screen_cpu_connector(args):
    """
    Runs the main emulator loop with the specified arguments.

    :param args: the parsed command-line arguments
    :return: the process exit status
    """
    pygame.init()
    display = PygameDisplay(scale=args.scale)
    display.init_display()
    pygame.display.set_caption(window_caption(args.rom))

    if args.no_sound:
        sound = SilentSound(volume=args.volume)
    else:
        try:
            sound = PygameSound(volume=args.volume)
        except pygame.error as error:
            logger.warning("Sound disabled: %s", error)
            sound = SilentSound(volume=args.volume)

    emulator = Chip8(display=display, sound=sound, steps_per_frame=args.steps_per_frame)
    if args.mute:
        emulator.mute()
    try:
        emulator.load_rom_file(args.rom)
    except RomLoadException as error:
        logger.error("%s", error)
        pygame.quit()
        return 1

    pump = EventPump(emulator, pygame_key_map(), args.rom)
    pump.muted = args.mute
    emulator.scheduler.on_frame = pump
    try:
        emulator.run()
    finally:
        emulator.sound.stop()
        pygame.quit()
    return 0 if emulator.fault is None else 2


def main(argv=None):
    args = parse_arguments(argv)
    if args.verbose >= 2:
        level = logging.DEBUG
    elif args.verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    return screen_cpu_connector(args)


if __name__ == "__main__":
    sys.exit(main())
