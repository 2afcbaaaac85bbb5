import logging
from array import array

from pygame import mixer

logger = logging.getLogger(__name__)

# The volume used until set_volume() is called, between 0.0 and 1.0
DEFAULT_VOLUME = 0.5

# The pitch of the tone in Hz
TONE_FREQUENCY = 490

# The length of one sound timer tick in milliseconds
TICK_INTERVAL = 1000.0 / 60

# The sample rate requested from the mixer
SAMPLE_RATE = 44100

# The peak amplitude of the signed 16-bit square wave
AMPLITUDE = 2 ** 14


class SilentSound(object):
    """
    An audio sink that makes no sound. It keeps track of the volume and mute
    state like a real sink would, which makes it usable in tests and on
    machines without an audio device.
    """
    def __init__(self, volume=DEFAULT_VOLUME):
        self.volume = volume
        self.muted = False
        self.playing = False
        self.duration = 0

    def play(self, duration_ticks):
        """
        Starts the tone for the specified number of timer ticks, replacing a
        tone that is already playing.

        :param duration_ticks: the number of 60 Hz ticks to sound for
        """
        self.playing = True
        self.duration = duration_ticks

    def stop(self):
        self.playing = False
        self.duration = 0

    def mute(self):
        self.muted = True

    def unmute(self):
        self.muted = False

    def set_volume(self, level):
        self.volume = max(0.0, min(1.0, level))


class PygameSound(SilentSound):
    """
    Plays a square wave tone through the pygame mixer. The tone is started
    with a maximum play time, so the mixer stops it by itself once the
    requested number of ticks has elapsed.
    """
    def __init__(self, volume=DEFAULT_VOLUME, frequency=TONE_FREQUENCY):
        SilentSound.__init__(self, volume)
        if not mixer.get_init():
            mixer.init(frequency=SAMPLE_RATE, size=-16, channels=1)
        sample_rate, _, channels = mixer.get_init()
        self.tone = mixer.Sound(buffer=self.square_wave(sample_rate, channels, frequency))
        self.apply_volume()

    @staticmethod
    def square_wave(sample_rate, channels, frequency):
        """
        Generates one second of a signed 16-bit square wave.

        :param sample_rate: the number of samples per second
        :param channels: the number of interleaved channels
        :param frequency: the pitch of the wave in Hz
        :return: the raw sample bytes
        """
        period = max(2, int(round(sample_rate / float(frequency))))
        half_period = period // 2
        samples = array('h')
        for index in range(sample_rate):
            value = AMPLITUDE if (index % period) < half_period else -AMPLITUDE
            samples.extend([value] * channels)
        return samples.tobytes()

    def apply_volume(self):
        self.tone.set_volume(0.0 if self.muted else self.volume)

    def play(self, duration_ticks):
        if self.playing:
            self.tone.stop()
        SilentSound.play(self, duration_ticks)
        self.tone.play(loops=-1, maxtime=int(duration_ticks * TICK_INTERVAL))
        logger.debug("Tone started for %d ticks", duration_ticks)

    def stop(self):
        SilentSound.stop(self)
        self.tone.stop()

    def mute(self):
        SilentSound.mute(self)
        self.apply_volume()

    def unmute(self):
        SilentSound.unmute(self)
        self.apply_volume()

    def set_volume(self, level):
        SilentSound.set_volume(self, level)
        self.apply_volume()
