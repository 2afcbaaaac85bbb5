import threading

# The number of keys on the Chip 8 keypad
NUM_KEYS = 0x10

# The default host keys for the Chip 8 keys, in the usual layout of the
# hexadecimal keypad on the left side of a QWERTY keyboard:
#
#     1 2 3 C        1 2 3 4
#     4 5 6 D   <-   q w e r
#     7 8 9 E        a s d f
#     A 0 B F        z x c v
DEFAULT_KEY_LAYOUT = {
    0x1: '1', 0x2: '2', 0x3: '3', 0xC: '4',
    0x4: 'q', 0x5: 'w', 0x6: 'e', 0xD: 'r',
    0x7: 'a', 0x8: 's', 0x9: 'd', 0xE: 'f',
    0xA: 'z', 0x0: 'x', 0xB: 'c', 0xF: 'v',
}


class KeyMap(object):
    """
    Translates host key identifiers (key names, key codes, ...) into Chip 8
    key values.
    """
    def __init__(self, layout=None):
        """
        :param layout: a dict of Chip 8 key value -> host key identifier
        """
        if layout is None:
            layout = DEFAULT_KEY_LAYOUT
        self.layout = dict(layout)
        self.lookup = dict((host_key, key) for key, host_key in self.layout.items())

    def __contains__(self, host_key):
        return host_key in self.lookup

    def get(self, host_key):
        """
        :param host_key: the host key identifier
        :return: the Chip 8 key value, or None if the key is not mapped
        """
        return self.lookup.get(host_key)


class Keypad(object):
    """
    The 16 key Chip 8 keypad. Key events may arrive at any time and from any
    thread; they only change the actual key states. The CPU reads the latched
    key states, which are copied from the actual states at the latch points
    only, so every instruction sees a stable snapshot of the keypad.

    A key that is pressed and released again between two latch points still
    shows up as pressed in the next snapshot.
    """
    def __init__(self):
        self.lock = threading.Lock()
        self.actual_states = [False] * NUM_KEYS
        self.pressed_edges = [False] * NUM_KEYS
        self.key_states = [False] * NUM_KEYS

    def reset(self):
        with self.lock:
            self.actual_states = [False] * NUM_KEYS
            self.pressed_edges = [False] * NUM_KEYS
            self.key_states = [False] * NUM_KEYS

    def set_key(self, key, pressed):
        """
        Records a key press or release.

        :param key: the Chip 8 key value 0 - F
        :param pressed: True if the key went down, False if it went up
        """
        key &= 0xF
        with self.lock:
            self.actual_states[key] = pressed
            if pressed:
                self.pressed_edges[key] = True

    def latch(self):
        """
        Copies the actual key states into the states seen by the CPU.
        """
        with self.lock:
            self.key_states = [
                actual or edge
                for actual, edge in zip(self.actual_states, self.pressed_edges)]
            self.pressed_edges = [False] * NUM_KEYS

    def is_pressed(self, key):
        return self.key_states[key & 0xF]

    def active_key(self):
        """
        Returns the lowest key that is pressed in the latched states. When
        several keys are held down, only the lowest of them is reported.

        :return: the key value, or None if no key is pressed
        """
        for key, pressed in enumerate(self.key_states):
            if pressed:
                return key
        return None
