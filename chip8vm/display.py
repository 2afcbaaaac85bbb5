from pygame import display, Color, draw

from chip8vm.screen import SCREEN_HEIGHT, SCREEN_WIDTH

SCREEN_NAME = 'CHIP8 Emulator'

# The default scaling applied to every Chip 8 pixel
DEFAULT_SCALE = 8

# The depth of the screen is the number of bits used to represent the color
# of a pixel.
SCREEN_DEPTH = 8

# The colors of the pixels to draw. The Chip 8 supports two colors: 0 (off)
# and 1 (on). The format of the colors is in RGBA format.
PIXEL_COLORS = {
    0: Color(0x77, 0x94, 0x00, 255),
    1: Color(0x28, 0x2C, 0x06, 255)
}


class NullDisplay(object):
    """
    A render sink that only remembers what it was last asked to draw.
    """
    def __init__(self):
        self.frames = 0
        self.pixels = {}

    def draw(self, pixels):
        self.frames += 1
        self.pixels.update(pixels)


class PygameDisplay(object):
    """
    Draws the Chip 8 screen into a pygame window. Only the pixels that changed
    since the previous frame are redrawn.
    """
    def __init__(self, scale=DEFAULT_SCALE, screen_width=SCREEN_WIDTH,
                 screen_height=SCREEN_HEIGHT):
        """
        The scale factor is used to modify the size of the window, since the
        original resolution of the Chip 8 was 64 x 32, which is quite small.

        :param scale: the scaling factor to apply to the screen
        :param screen_width: the width of the screen in Chip 8 pixels
        :param screen_height: the height of the screen in Chip 8 pixels
        """
        self.scale = scale
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.surface = None

    def init_display(self):
        """
        Opens a window of the scaled screen size, filled with color 0.
        """
        display.init()
        self.surface = display.set_mode(
            (self.screen_width * self.scale, self.screen_height * self.scale),
            0,
            SCREEN_DEPTH)
        display.set_caption(SCREEN_NAME)
        self.surface.fill(PIXEL_COLORS[0])
        display.flip()

    def draw(self, pixels):
        """
        Paints the changed pixels and flips the drawing buffer to the window.

        :param pixels: a dict of (x, y) -> pixel color
        """
        if self.surface is None:
            self.init_display()
        for (x_pos, y_pos), color in pixels.items():
            draw.rect(self.surface,
                      PIXEL_COLORS[color],
                      (x_pos * self.scale, y_pos * self.scale, self.scale, self.scale))
        display.flip()

    @staticmethod
    def close():
        display.quit()
