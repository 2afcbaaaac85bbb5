import logging

logger = logging.getLogger(__name__)

# The size of the screen in pixels. Note that a render sink may scale this.
SCREEN_WIDTH = 64
SCREEN_HEIGHT = 32

# The memory location of the first built-in digit sprite
FONT_OFFSET = 0x050

# The number of bytes (rows) in every built-in digit sprite
FONT_SPRITE_SIZE = 5

# The built-in hexadecimal digit sprites 0 - F. Each row is one byte, with the
# most significant bit being the leftmost pixel.
FONT_SPRITES = (
    (0xF0, 0x90, 0x90, 0x90, 0xF0),  # 0
    (0x20, 0x60, 0x20, 0x20, 0x70),  # 1
    (0xF0, 0x10, 0xF0, 0x80, 0xF0),  # 2
    (0xF0, 0x10, 0xF0, 0x10, 0xF0),  # 3
    (0x90, 0x90, 0xF0, 0x10, 0x10),  # 4
    (0xF0, 0x80, 0xF0, 0x10, 0xF0),  # 5
    (0xF0, 0x80, 0xF0, 0x90, 0xF0),  # 6
    (0xF0, 0x10, 0x20, 0x40, 0x40),  # 7
    (0xF0, 0x90, 0xF0, 0x90, 0xF0),  # 8
    (0xF0, 0x90, 0xF0, 0x10, 0xF0),  # 9
    (0xF0, 0x90, 0xF0, 0x90, 0x90),  # A
    (0xE0, 0x90, 0xE0, 0x90, 0xE0),  # B
    (0xF0, 0x80, 0x80, 0x80, 0xF0),  # C
    (0xE0, 0x90, 0x90, 0x90, 0xE0),  # D
    (0xF0, 0x80, 0xF0, 0x80, 0xF0),  # E
    (0xF0, 0x80, 0xF0, 0x80, 0x80),  # F
)


def sprite_offset(digit):
    """
    Returns the memory location of the built-in sprite for a hex digit.

    :param digit: the digit 0 - F
    :return: the address of the first row of the sprite
    """
    return FONT_OFFSET + (digit & 0xF) * FONT_SPRITE_SIZE


class Screen(object):
    """
    A class to emulate a Chip 8 Screen. The original Chip 8 screen was 64 x 32
    with 2 colors. In this emulator, this translates to color 0 (off) and color
    1 (on).

    The screen only keeps the pixel states. Every pixel that changes is
    remembered until the next call to render(), which hands the changed pixels
    to a render sink (see chip8vm.display) and forgets them again.
    """
    def __init__(self, screen_width=SCREEN_WIDTH, screen_height=SCREEN_HEIGHT):
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.pixels = bytearray(screen_width * screen_height)
        self.modifications = {}
        self.clear_screen()

    def get_index(self, x_axis_position, y_axis_position):
        x_axis_position %= self.screen_width
        y_axis_position %= self.screen_height
        return y_axis_position * self.screen_width + x_axis_position

    def get_pixel(self, x_axis_position, y_axis_position):
        """
        Returns whether the pixel is on (1) or off (0) at the specified
        location. Coordinates wrap around the edges of the screen.

        :param x_axis_position: the x coordinate to check
        :param y_axis_position: the y coordinate to check
        :return: the color of the specified pixel (0 or 1)
        """
        return self.pixels[self.get_index(x_axis_position, y_axis_position)]

    def toggle_pixel(self, x_axis_position, y_axis_position):
        index = self.get_index(x_axis_position, y_axis_position)
        self.pixels[index] ^= 1
        self.modifications[index] = self.pixels[index]

    def clear_screen(self):
        """
        Turns off all the pixels on the screen (writes color 0 to all pixels).
        """
        self.pixels = bytearray(self.screen_width * self.screen_height)
        self.invalidate()

    def invalidate(self):
        """
        Marks every pixel as modified, so that the next render repaints the
        whole screen.
        """
        self.modifications = dict(enumerate(self.pixels))

    def draw_sprite_row(self, x_axis_position, y_axis_position, row_byte):
        """
        XOR one byte of a sprite onto the screen. The most significant bit is
        drawn at x_axis_position, the following bits to the right of it,
        wrapping around the right edge. Rows below the bottom edge are not
        drawn at all.

        :param x_axis_position: the x coordinate of the leftmost pixel
        :param y_axis_position: the y coordinate of the row
        :param row_byte: the 8 pixels of the row
        :return: True if a pixel was turned off by the draw
        """
        collision = False
        if y_axis_position < 0 or y_axis_position >= self.screen_height:
            return collision

        for bit_index in range(8):
            if row_byte & (0x80 >> bit_index):
                x_coord = (x_axis_position + bit_index) % self.screen_width
                if self.get_pixel(x_coord, y_axis_position) == 1:
                    collision = True
                self.toggle_pixel(x_coord, y_axis_position)
        return collision

    def dirty_pixels(self):
        """
        Returns the pixels modified since the previous call, keyed by their
        (x, y) coordinates, and starts tracking modifications anew.

        :return: a dict of (x, y) -> pixel color
        """
        modifications, self.modifications = self.modifications, {}
        return dict(
            ((index % self.screen_width, index // self.screen_width), color)
            for index, color in modifications.items())

    def render(self, sink=None):
        """
        Hands the modified pixels to the render sink.

        :param sink: an object with a draw(pixels) method, or None
        :return: the modified pixels
        """
        pixels = self.dirty_pixels()
        if sink is not None and pixels:
            sink.draw(pixels)
        return pixels

    @staticmethod
    def write_sprites_to_memory(memory):
        """
        Writes the built-in digit sprites into memory at their fixed offsets.

        :param memory: the memory to write the sprites to
        """
        for digit, sprite in enumerate(FONT_SPRITES):
            memory.write_bytes(sprite_offset(digit), sprite)
        logger.debug("Wrote %d digit sprites at %04X", len(FONT_SPRITES), FONT_OFFSET)

    @staticmethod
    def sprite_offset(digit):
        return sprite_offset(digit)
