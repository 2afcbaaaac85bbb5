import logging
from random import randint

from chip8vm.exception import (
    Chip8Exception,
    StackOverflowException,
    StackUnderflowException,
    UnknownOpCodeException,
)
from chip8vm.keypad import NUM_KEYS

logger = logging.getLogger(__name__)

# Where the program counter should originally point
PROGRAM_COUNTER_START = 0x200

# The size of a single instruction in bytes
INSTRUCTION_SIZE = 2

# The total number of registers in the Chip 8 CPU
NUM_REGISTERS = 0x10

# The maximum number of return addresses on the call stack
STACK_DEPTH = 16

# The states the CPU can be in
STATE_RUNNING = 'running'
STATE_AWAITING_KEY = 'awaiting_key'

# Masks used to pick the fields out of an operand
OPERATION_MASK = 0xF000
ADDRESS_MASK = 0x0FFF
X_REGISTER_MASK = 0x0F00
Y_REGISTER_MASK = 0x00F0
BYTE_MASK = 0x00FF
NIBBLE_MASK = 0x000F


def random_byte():
    return randint(0, 255)


class CPU(object):
    """
    A class to emulate a Chip 8 CPU. There are several good resources out on
    the web that describe the internals of the Chip 8 CPU. For example:

        http://devernay.free.fr/hacks/chip8/C8TECH10.HTM
        http://michael.toren.net/mirrors/chip8/chip8def.htm

    To summarize these sources, the Chip 8 has:

        * 16 x 8-bit general purpose registers (V0 - VF**)
        * 1 x 16-bit index register (I)
        * 1 x 16-bit program counter (PC)
        * 1 x 8-bit delay timer (DT)
        * 1 x 8-bit sound timer (ST)
        * a call stack of return addresses

    ** VF is a special register - it is used to store the carry, borrow and
    collision flags, and is overwritten by the instructions that set them.

    An instruction either completes or raises a Chip8Exception before it has
    changed anything, in which case the program counter is left pointing at
    the faulting instruction.
    """
    def __init__(self, memory, screen, keypad, sound=None,
                 stack_depth=STACK_DEPTH, random_source=random_byte):
        """
        :param memory: the Memory to execute from
        :param screen: the Screen that sprites are drawn on
        :param keypad: the Keypad to read keys from
        :param sound: the audio sink started by the sound timer, or None
        :param stack_depth: the maximum number of nested subroutine calls
        :param random_source: a callable returning a random byte
        """
        self.memory = memory
        self.screen = screen
        self.keypad = keypad
        self.sound = sound
        self.stack_depth = stack_depth
        self.random_source = random_source

        self.timers = {
            'delay': 0,
            'sound': 0,
        }
        self.registers = {
            'v': [],
            'index': 0,
            'pc': 0,
        }
        self.stack = []
        self.operand = 0
        self.state = STATE_RUNNING
        self.awaiting_key = None

        # The operation_lookup table is executed according to the most
        # significant nibble of the operand (e.g. operand 8xy4 would call
        # self.execute_logical_instruction)
        self.operation_lookup = {
            0x0: self.clear_return,                  # 00E0, 00EE
            0x1: self.jump_to_address,               # 1nnn - JP   nnn
            0x2: self.jump_to_subroutine,            # 2nnn - CALL nnn
            0x3: self.skip_if_reg_equal_val,         # 3xkk - SE   Vx, kk
            0x4: self.skip_if_reg_not_equal_val,     # 4xkk - SNE  Vx, kk
            0x5: self.skip_if_reg_equal_reg,         # 5xy0 - SE   Vx, Vy
            0x6: self.move_value_to_reg,             # 6xkk - LD   Vx, kk
            0x7: self.add_value_to_reg,              # 7xkk - ADD  Vx, kk
            0x8: self.execute_logical_instruction,   # see subfunctions below
            0x9: self.skip_if_reg_not_equal_reg,     # 9xy0 - SNE  Vx, Vy
            0xA: self.load_index_reg_with_value,     # Annn - LD   I, nnn
            0xB: self.jump_to_v0_plus_value,         # Bnnn - JP   V0, nnn
            0xC: self.generate_random_number,        # Cxkk - RND  Vx, kk
            0xD: self.draw_sprite,                   # Dxyn - DRW  Vx, Vy, n
            0xE: self.keyboard_routines,             # see subfunctions below
            0xF: self.misc_routines,                 # see subfunctions below
        }

        # Operations whose operand starts with 8, selected by the least
        # significant nibble
        self.logical_operation_lookup = {
            0x0: self.move_reg_into_reg,             # 8xy0 - LD   Vx, Vy
            0x1: self.logical_or,                    # 8xy1 - OR   Vx, Vy
            0x2: self.logical_and,                   # 8xy2 - AND  Vx, Vy
            0x3: self.exclusive_or,                  # 8xy3 - XOR  Vx, Vy
            0x4: self.add_reg_to_reg,                # 8xy4 - ADD  Vx, Vy
            0x5: self.subtract_reg_from_reg,         # 8xy5 - SUB  Vx, Vy
            0x6: self.right_shift_reg,               # 8xy6 - SHR  Vx
            0x7: self.subtract_reg_from_reg1,        # 8xy7 - SUBN Vx, Vy
            0xE: self.left_shift_reg,                # 8xyE - SHL  Vx
        }

        # Operations whose operand starts with F, selected by the least
        # significant byte
        self.misc_routine_lookup = {
            0x07: self.move_delay_timer_into_reg,    # Fx07 - LD   Vx, DT
            0x0A: self.wait_for_keypress,            # Fx0A - LD   Vx, K
            0x15: self.move_reg_into_delay_timer,    # Fx15 - LD   DT, Vx
            0x18: self.move_reg_into_sound_timer,    # Fx18 - LD   ST, Vx
            0x1E: self.add_reg_into_index,           # Fx1E - ADD  I, Vx
            0x29: self.load_index_with_reg_sprite,   # Fx29 - LD   F, Vx
            0x33: self.store_bcd_in_memory,          # Fx33 - LD   B, Vx
            0x55: self.store_regs_in_memory,         # Fx55 - LD   [I], Vx
            0x65: self.read_regs_from_memory,        # Fx65 - LD   Vx, [I]
        }
        self.reset()

    def __str__(self):
        val = 'PC: {:4X}  OP: {:4X}\n'.format(self.registers['pc'], self.operand)
        for index in range(NUM_REGISTERS):
            val += 'V{:X}: {:2X}\n'.format(index, self.registers['v'][index])
        val += 'I: {:4X}\n'.format(self.registers['index'])
        val += 'DT: {:2X}  ST: {:2X}\n'.format(self.timers['delay'], self.timers['sound'])
        val += 'STACK: {}'.format(' '.join('{:4X}'.format(a) for a in self.stack))
        return val

    @property
    def running(self):
        return self.state == STATE_RUNNING

    def reset(self):
        """
        Reset the CPU by blanking out all registers, emptying the stack and
        setting the program counter to its starting value.
        """
        self.registers['v'] = [0] * NUM_REGISTERS
        self.registers['pc'] = PROGRAM_COUNTER_START
        self.registers['index'] = 0
        self.timers['delay'] = 0
        self.timers['sound'] = 0
        self.stack = []
        self.operand = 0
        self.state = STATE_RUNNING
        self.awaiting_key = None

    def step(self):
        """
        Execute the next instruction pointed to by the program counter. The
        program counter is advanced past the instruction before it executes,
        so jumps, calls and returns simply overwrite it.

        :return: the operand executed
        """
        address = self.registers['pc']
        self.operand = self.memory.read_word(address)
        self.registers['pc'] = address + INSTRUCTION_SIZE
        logger.debug("%04X: %04X", address, self.operand)

        operation = (self.operand & OPERATION_MASK) >> 12
        try:
            self.operation_lookup[operation]()
        except Chip8Exception as error:
            self.registers['pc'] = address
            if isinstance(error, UnknownOpCodeException):
                error.address = address
            raise
        return self.operand

    def execute_instruction(self, operand):
        """
        Execute a single operand without fetching it from memory. The program
        counter is not advanced beforehand. Mostly useful for testing.

        :param operand: the operand to execute
        """
        self.operand = operand
        self.operation_lookup[(operand & OPERATION_MASK) >> 12]()

    def decode_x(self):
        return (self.operand & X_REGISTER_MASK) >> 8

    def decode_y(self):
        return (self.operand & Y_REGISTER_MASK) >> 4

    def skip_next_instruction(self):
        self.registers['pc'] += INSTRUCTION_SIZE

    def execute_logical_instruction(self):
        """
        Execute the logical instruction based upon the current operand.
        """
        operation = self.operand & NIBBLE_MASK
        try:
            self.logical_operation_lookup[operation]()
        except KeyError:
            raise UnknownOpCodeException(self.operand)

    def keyboard_routines(self):
        """
        Run the specified keyboard routine based upon the operand. These
        operations are:

            Ex9E - SKP  Vx
            ExA1 - SKNP Vx

        0x9E checks whether the key held in register x is pressed, and if it
        is, skips the next instruction. 0xA1 skips the next instruction if
        that key is NOT pressed. Keys are read from the latched keypad state.

           Bits:  15-12     11-8      7-4       3-0
                  unused      x      9 or A    E or 1
        """
        operation = self.operand & BYTE_MASK
        if operation not in (0x9E, 0xA1):
            raise UnknownOpCodeException(self.operand)

        key_to_check = self.registers['v'][self.decode_x()]
        key_pressed = key_to_check < NUM_KEYS and self.keypad.is_pressed(key_to_check)

        # Skip if the key specified in the source register is pressed
        if operation == 0x9E and key_pressed:
            self.skip_next_instruction()

        # Skip if the key specified in the source register is not pressed
        if operation == 0xA1 and not key_pressed:
            self.skip_next_instruction()

    def misc_routines(self):
        """
        Will execute one of the routines specified in misc_routine_lookup.
        """
        operation = self.operand & BYTE_MASK
        try:
            self.misc_routine_lookup[operation]()
        except KeyError:
            raise UnknownOpCodeException(self.operand)

    def clear_return(self):
        """
        Opcodes starting with a 0 are one of the following instructions:

            00E0 - Clear the display
            00EE - Return from subroutine

        Any other opcode in this group (including the machine code routine
        call 0nnn) is not supported.
        """
        operation = self.operand & ADDRESS_MASK
        if operation == 0x0E0:
            self.screen.clear_screen()
        elif operation == 0x0EE:
            if not self.stack:
                raise StackUnderflowException()
            self.registers['pc'] = self.stack.pop()
        else:
            raise UnknownOpCodeException(self.operand)

    def jump_to_address(self):
        """
        1nnn - JP nnn

        Jump to address. The address to jump to is calculated using the bits
        taken from the operand as follows:

           Bits:  15-12    11-8      7-4      3-0
                  unused  address  address  address
        """
        self.registers['pc'] = self.operand & ADDRESS_MASK

    def jump_to_subroutine(self):
        """
        2nnn - CALL nnn

        Jump to subroutine. Save the current program counter (which already
        points at the next instruction) on the stack.

           Bits:  15-12    11-8      7-4      3-0
                  unused  address  address  address
        """
        if len(self.stack) >= self.stack_depth:
            raise StackOverflowException(self.stack_depth)
        self.stack.append(self.registers['pc'])
        self.registers['pc'] = self.operand & ADDRESS_MASK

    def skip_if_reg_equal_val(self):
        """
        3xkk - SE Vx, kk

        Skip if register contents equal to constant value.

           Bits:  15-12     11-8      7-4       3-0
                  unused      x      constant  constant
        """
        if self.registers['v'][self.decode_x()] == (self.operand & BYTE_MASK):
            self.skip_next_instruction()

    def skip_if_reg_not_equal_val(self):
        """
        4xkk - SNE Vx, kk

        Skip if register contents not equal to constant value.
        """
        if self.registers['v'][self.decode_x()] != (self.operand & BYTE_MASK):
            self.skip_next_instruction()

    def skip_if_reg_equal_reg(self):
        """
        5xy0 - SE Vx, Vy

        Skip if register x is equal to register y.

           Bits:  15-12     11-8      7-4       3-0
                  unused      x         y         0
        """
        if self.registers['v'][self.decode_x()] == self.registers['v'][self.decode_y()]:
            self.skip_next_instruction()

    def move_value_to_reg(self):
        """
        6xkk - LD Vx, kk
        """
        self.registers['v'][self.decode_x()] = self.operand & BYTE_MASK

    def add_value_to_reg(self):
        """
        7xkk - ADD Vx, kk

        Add the constant value to the specified register, wrapping around at
        256. The carry flag is left alone.
        """
        target = self.decode_x()
        temp = self.registers['v'][target] + (self.operand & BYTE_MASK)
        self.registers['v'][target] = temp & 0xFF

    def move_reg_into_reg(self):
        """
        8xy0 - LD Vx, Vy
        """
        self.registers['v'][self.decode_x()] = self.registers['v'][self.decode_y()]

    def logical_or(self):
        """
        8xy1 - OR Vx, Vy
        """
        self.registers['v'][self.decode_x()] |= self.registers['v'][self.decode_y()]

    def logical_and(self):
        """
        8xy2 - AND Vx, Vy
        """
        self.registers['v'][self.decode_x()] &= self.registers['v'][self.decode_y()]

    def exclusive_or(self):
        """
        8xy3 - XOR Vx, Vy
        """
        self.registers['v'][self.decode_x()] ^= self.registers['v'][self.decode_y()]

    def add_reg_to_reg(self):
        """
        8xy4 - ADD Vx, Vy

        Add the value in register y to register x. If a carry is generated,
        set the carry flag in register VF, otherwise clear it.

           Bits:  15-12     11-8      7-4       3-0
                  unused      x         y         4
        """
        target = self.decode_x()
        temp = self.registers['v'][target] + self.registers['v'][self.decode_y()]
        self.registers['v'][target] = temp & 0xFF
        self.registers['v'][0xF] = 1 if temp > 0xFF else 0

    def subtract_reg_from_reg(self):
        """
        8xy5 - SUB Vx, Vy

        Subtract register y from register x, storing the result in register x.
        VF is set to 1 if Vx > Vy (no borrow), otherwise 0.
        """
        target = self.decode_x()
        target_reg = self.registers['v'][target]
        source_reg = self.registers['v'][self.decode_y()]
        self.registers['v'][target] = (target_reg - source_reg) & 0xFF
        self.registers['v'][0xF] = 1 if target_reg > source_reg else 0

    def right_shift_reg(self):
        """
        8xy6 - SHR Vx

        Shift register x one bit to the right. Bit 0 is shifted into VF.
        """
        source = self.decode_x()
        bit_zero = self.registers['v'][source] & 0x1
        self.registers['v'][source] = self.registers['v'][source] >> 1
        self.registers['v'][0xF] = bit_zero

    def subtract_reg_from_reg1(self):
        """
        8xy7 - SUBN Vx, Vy

        Subtract register x from register y, storing the result in register x.
        VF is set to 1 if Vy > Vx (no borrow), otherwise 0.
        """
        target = self.decode_x()
        target_reg = self.registers['v'][target]
        source_reg = self.registers['v'][self.decode_y()]
        self.registers['v'][target] = (source_reg - target_reg) & 0xFF
        self.registers['v'][0xF] = 1 if source_reg > target_reg else 0

    def left_shift_reg(self):
        """
        8xyE - SHL Vx

        Shift register x one bit to the left. Bit 7 is shifted into VF.
        """
        source = self.decode_x()
        bit_seven = (self.registers['v'][source] & 0x80) >> 7
        self.registers['v'][source] = (self.registers['v'][source] << 1) & 0xFF
        self.registers['v'][0xF] = bit_seven

    def skip_if_reg_not_equal_reg(self):
        """
        9xy0 - SNE Vx, Vy
        """
        if self.registers['v'][self.decode_x()] != self.registers['v'][self.decode_y()]:
            self.skip_next_instruction()

    def load_index_reg_with_value(self):
        """
        Annn - LD I, nnn
        """
        self.registers['index'] = self.operand & ADDRESS_MASK

    def jump_to_v0_plus_value(self):
        """
        Bnnn - JP V0, nnn

        Jump to the address nnn plus the value of register V0.
        """
        self.registers['pc'] = self.registers['v'][0] + (self.operand & ADDRESS_MASK)

    def generate_random_number(self):
        """
        Cxkk - RND Vx, kk

        A random number between 0 and 255 is generated. It is ANDed with the
        constant value passed in the operand and stored in register x.
        """
        value = self.operand & BYTE_MASK
        self.registers['v'][self.decode_x()] = value & self.random_source()

    def draw_sprite(self):
        """
        Dxyn - DRW Vx, Vy, n

        Draws the n byte sprite pointed to by the index register at the
        coordinates held in registers x and y. Drawing is done via an XOR
        routine: a pixel that is already on and is drawn again is turned off.
        Each sprite is 8 pixels wide and n rows tall; consecutive bytes in
        memory make up its rows. For example, the following 7 bytes:

                       bit 7 6 5 4 3 2 1 0

           byte 0          0 1 1 1 1 1 0 0
           byte 1          0 1 0 0 0 0 0 0
           byte 2          0 1 0 0 0 0 0 0
           byte 3          0 1 1 1 1 1 0 0
           byte 4          0 1 0 0 0 0 0 0
           byte 5          0 1 0 0 0 0 0 0
           byte 6          0 1 1 1 1 1 0 0

        draw an 'E'. Pixels wrap around the right edge, while rows below the
        bottom edge are clipped. If any pixel gets turned off, VF is set to 1,
        otherwise it is set to 0.

           Bits:  15-12     11-8      7-4       3-0
                  unused      x         y      num_bytes
        """
        x_pos = self.registers['v'][self.decode_x()]
        y_pos = self.registers['v'][self.decode_y()]
        num_bytes = self.operand & NIBBLE_MASK
        rows = self.memory.read_bytes(self.registers['index'], num_bytes)

        self.registers['v'][0xF] = 0
        for y_index, row in enumerate(rows):
            if self.screen.draw_sprite_row(x_pos, y_pos + y_index, row):
                self.registers['v'][0xF] = 1

    def move_delay_timer_into_reg(self):
        """
        Fx07 - LD Vx, DT
        """
        self.registers['v'][self.decode_x()] = self.timers['delay'] & 0xFF

    def wait_for_keypress(self):
        """
        Fx0A - LD Vx, K

        Stop execution until a key is pressed, then move the value of the key
        into register x. The CPU only records which register to fill; the
        scheduler polls the keypad while the CPU waits and hands the key over
        through resolve_key().
        """
        self.awaiting_key = self.decode_x()
        self.state = STATE_AWAITING_KEY
        logger.debug("Waiting for a key press into V%X", self.awaiting_key)

    def resolve_key(self, key):
        """
        Store the key that ended a wait_for_keypress and resume execution.

        :param key: the value of the key that was pressed
        """
        if self.state != STATE_AWAITING_KEY:
            return
        self.registers['v'][self.awaiting_key] = key & 0xFF
        logger.debug("Key %X pressed into V%X", key, self.awaiting_key)
        self.awaiting_key = None
        self.state = STATE_RUNNING

    def move_reg_into_delay_timer(self):
        """
        Fx15 - LD DT, Vx
        """
        self.timers['delay'] = self.registers['v'][self.decode_x()]

    def move_reg_into_sound_timer(self):
        """
        Fx18 - LD ST, Vx

        Move the value of register x into the sound timer, and start the tone
        for that many ticks. The audio sink stops the tone on its own.
        """
        self.timers['sound'] = self.registers['v'][self.decode_x()]
        if self.timers['sound'] and self.sound is not None:
            self.sound.play(self.timers['sound'])

    def add_reg_into_index(self):
        """
        Fx1E - ADD I, Vx

        The index register is not masked to 12 bits.
        """
        self.registers['index'] += self.registers['v'][self.decode_x()]

    def load_index_with_reg_sprite(self):
        """
        Fx29 - LD F, Vx

        Load the index with the location of the built-in sprite for the digit
        held in the low nibble of register x.
        """
        digit = self.registers['v'][self.decode_x()] & 0xF
        self.registers['index'] = self.screen.sprite_offset(digit)

    def store_bcd_in_memory(self):
        """
        Fx33 - LD B, Vx

        Take the value stored in register x and place its decimal digits in
        the following locations:

            hundreds   -> memory[index]
            tens       -> memory[index + 1]
            ones       -> memory[index + 2]
        """
        value = self.registers['v'][self.decode_x()]
        self.memory.write_bytes(
            self.registers['index'], (value // 100, (value // 10) % 10, value % 10))

    def store_regs_in_memory(self):
        """
        Fx55 - LD [I], Vx

        Store registers V0 through Vx (inclusive) in memory starting at the
        location held in the index register. The index register itself is
        left unchanged.
        """
        last = self.decode_x()
        self.memory.write_bytes(self.registers['index'], self.registers['v'][:last + 1])

    def read_regs_from_memory(self):
        """
        Fx65 - LD Vx, [I]

        Read registers V0 through Vx (inclusive) from memory starting at the
        location held in the index register.
        """
        last = self.decode_x()
        values = self.memory.read_bytes(self.registers['index'], last + 1)
        self.registers['v'][:last + 1] = list(values)

    def decrement_timers(self):
        """
        Decrement both the sound and delay timer, stopping at zero.
        """
        if self.timers['delay'] != 0:
            self.timers['delay'] -= 1

        if self.timers['sound'] != 0:
            self.timers['sound'] -= 1
