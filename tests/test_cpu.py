import unittest

from chip8vm.cpu import (
    CPU,
    PROGRAM_COUNTER_START,
    STACK_DEPTH,
    STATE_AWAITING_KEY,
    STATE_RUNNING,
)
from chip8vm.exception import (
    MemoryOutOfBoundsException,
    StackOverflowException,
    StackUnderflowException,
    UnknownOpCodeException,
)
from chip8vm.keypad import Keypad
from chip8vm.memory import Memory
from chip8vm.screen import FONT_OFFSET, Screen
from chip8vm.sound import SilentSound


class CPUTestCase(unittest.TestCase):
    def setUp(self):
        self.memory = Memory()
        self.screen = Screen()
        self.keypad = Keypad()
        self.sound = SilentSound()
        self.screen.write_sprites_to_memory(self.memory)
        self.cpu = CPU(self.memory, self.screen, self.keypad, self.sound,
                       random_source=lambda: 0xA5)
        self.v = self.cpu.registers['v']

    def load(self, *operands, **kwargs):
        address = kwargs.get('address', PROGRAM_COUNTER_START)
        data = []
        for operand in operands:
            data += [operand >> 8, operand & 0xFF]
        self.memory.write_bytes(address, data)

    def run_operands(self, *operands):
        self.load(*operands)
        for _ in operands:
            self.cpu.step()


class TestFetch(CPUTestCase):
    def test_step_advances_program_counter(self):
        self.load(0x6012)
        self.assertEqual(self.cpu.step(), 0x6012)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)
        self.assertEqual(self.v[0], 0x12)

    def test_reset(self):
        self.run_operands(0x6012, 0xA123, 0x2300)
        self.cpu.reset()
        self.assertEqual(self.cpu.registers['v'], [0] * 16)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)
        self.assertEqual(self.cpu.registers['index'], 0)
        self.assertEqual(self.cpu.stack, [])
        self.assertEqual(self.cpu.state, STATE_RUNNING)

    def test_fetch_past_end_of_memory(self):
        self.cpu.registers['pc'] = len(self.memory) - 1
        with self.assertRaises(MemoryOutOfBoundsException):
            self.cpu.step()
        self.assertEqual(self.cpu.registers['pc'], len(self.memory) - 1)

    def test_str_dumps_registers(self):
        self.run_operands(0x6A42)
        dump = str(self.cpu)
        self.assertIn('VA: 42', dump)
        self.assertIn('PC:  202', dump)


class TestFlowControl(CPUTestCase):
    def test_jump(self):
        self.run_operands(0x1ABC)
        self.assertEqual(self.cpu.registers['pc'], 0xABC)

    def test_call_then_return(self):
        self.load(0x2300)
        self.load(0x00EE, address=0x300)
        self.cpu.step()
        self.assertEqual(self.cpu.registers['pc'], 0x300)
        self.assertEqual(self.cpu.stack, [0x202])
        self.cpu.step()
        self.assertEqual(self.cpu.registers['pc'], 0x202)
        self.assertEqual(self.cpu.stack, [])

    def test_return_with_empty_stack(self):
        self.load(0x00EE)
        with self.assertRaises(StackUnderflowException):
            self.cpu.step()
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)

    def test_call_stack_overflow(self):
        self.load(0x2200)
        for _ in range(STACK_DEPTH):
            self.cpu.step()
        self.assertEqual(len(self.cpu.stack), STACK_DEPTH)
        with self.assertRaises(StackOverflowException):
            self.cpu.step()
        self.assertEqual(len(self.cpu.stack), STACK_DEPTH)
        self.assertEqual(self.cpu.registers['pc'], 0x200)

    def test_jump_plus_v0(self):
        self.run_operands(0x6010, 0xB300)
        self.assertEqual(self.cpu.registers['pc'], 0x310)

    def test_skip_if_reg_equal_val(self):
        self.v[3] = 0x42
        self.cpu.execute_instruction(0x3342)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)
        self.cpu.execute_instruction(0x3343)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)

    def test_skip_if_reg_not_equal_val(self):
        self.v[3] = 0x42
        self.cpu.execute_instruction(0x4342)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)
        self.cpu.execute_instruction(0x4343)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)

    def test_skip_if_reg_equal_reg(self):
        self.v[1], self.v[2], self.v[3] = 7, 7, 8
        self.cpu.execute_instruction(0x5120)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)
        self.cpu.execute_instruction(0x5130)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)

    def test_skip_if_reg_not_equal_reg(self):
        self.v[1], self.v[2], self.v[3] = 7, 7, 8
        self.cpu.execute_instruction(0x9120)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)
        self.cpu.execute_instruction(0x9130)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)

    def test_register_compare_ignores_low_nibble(self):
        self.v[1], self.v[2], self.v[3] = 7, 7, 8
        for operand in (0x5121, 0x512F):
            self.cpu.registers['pc'] = PROGRAM_COUNTER_START
            self.cpu.execute_instruction(operand)
            self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)
        for operand in (0x5131, 0x9121):
            self.cpu.registers['pc'] = PROGRAM_COUNTER_START
            self.cpu.execute_instruction(operand)
            self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)
        self.cpu.registers['pc'] = PROGRAM_COUNTER_START
        self.cpu.execute_instruction(0x913F)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)


class TestArithmetic(CPUTestCase):
    def test_add_value_wraps_without_carry(self):
        self.v[0xF] = 0x55
        self.run_operands(0x65F0, 0x7520)
        self.assertEqual(self.v[5], 0x10)
        self.assertEqual(self.v[0xF], 0x55)

    def test_register_moves_and_logic(self):
        self.v[1], self.v[2] = 0b1100, 0b1010
        self.cpu.execute_instruction(0x8121)
        self.assertEqual(self.v[1], 0b1110)
        self.v[1] = 0b1100
        self.cpu.execute_instruction(0x8122)
        self.assertEqual(self.v[1], 0b1000)
        self.v[1] = 0b1100
        self.cpu.execute_instruction(0x8123)
        self.assertEqual(self.v[1], 0b0110)
        self.cpu.execute_instruction(0x8120)
        self.assertEqual(self.v[1], 0b1010)

    def test_add_reg_to_reg_carry(self):
        for x_value in range(256):
            for y_value in range(256):
                self.v[1], self.v[2] = x_value, y_value
                self.cpu.execute_instruction(0x8124)
                self.assertEqual(self.v[1], (x_value + y_value) % 256)
                self.assertEqual(self.v[0xF], 1 if x_value + y_value > 255 else 0)

    def test_subtract_reg_from_reg_borrow(self):
        for x_value in range(256):
            for y_value in range(256):
                self.v[1], self.v[2] = x_value, y_value
                self.cpu.execute_instruction(0x8125)
                self.assertEqual(self.v[1], (x_value - y_value) % 256)
                self.assertEqual(self.v[0xF], 1 if x_value > y_value else 0)

    def test_subtract_reg_from_reg1(self):
        self.v[1], self.v[2] = 0x10, 0x30
        self.cpu.execute_instruction(0x8127)
        self.assertEqual(self.v[1], 0x20)
        self.assertEqual(self.v[0xF], 1)
        self.v[1], self.v[2] = 0x30, 0x10
        self.cpu.execute_instruction(0x8127)
        self.assertEqual(self.v[1], 0xE0)
        self.assertEqual(self.v[0xF], 0)

    def test_right_shift_shifts_vx(self):
        self.v[1], self.v[2] = 0b101, 0xFF
        self.cpu.execute_instruction(0x8126)
        self.assertEqual(self.v[1], 0b10)
        self.assertEqual(self.v[0xF], 1)
        self.cpu.execute_instruction(0x8126)
        self.assertEqual(self.v[1], 0b1)
        self.assertEqual(self.v[0xF], 0)

    def test_left_shift_shifts_vx(self):
        self.v[1], self.v[2] = 0x81, 0x00
        self.cpu.execute_instruction(0x812E)
        self.assertEqual(self.v[1], 0x02)
        self.assertEqual(self.v[0xF], 1)
        self.cpu.execute_instruction(0x812E)
        self.assertEqual(self.v[1], 0x04)
        self.assertEqual(self.v[0xF], 0)

    def test_flag_register_as_operand(self):
        self.v[0xF] = 0xFF
        self.v[1] = 0x01
        self.cpu.execute_instruction(0x8F14)
        self.assertEqual(self.v[0xF], 1)

    def test_random_number_masked(self):
        self.cpu.execute_instruction(0xC30F)
        self.assertEqual(self.v[3], 0xA5 & 0x0F)

    def test_load_index(self):
        self.cpu.execute_instruction(0xA123)
        self.assertEqual(self.cpu.registers['index'], 0x123)

    def test_add_to_index_is_not_masked(self):
        self.cpu.registers['index'] = 0xFFF
        self.v[4] = 0x10
        self.cpu.execute_instruction(0xF41E)
        self.assertEqual(self.cpu.registers['index'], 0x100F)


class TestDrawing(CPUTestCase):
    def test_draw_digit_sprite(self):
        self.v[0], self.v[1] = 2, 3
        self.run_operands(0xA000 | FONT_OFFSET, 0xD015)
        self.assertEqual(self.v[0xF], 0)
        self.assertEqual([self.screen.get_pixel(x, 3) for x in range(2, 10)],
                         [1, 1, 1, 1, 0, 0, 0, 0])
        self.assertEqual([self.screen.get_pixel(x, 4) for x in range(2, 10)],
                         [1, 0, 0, 1, 0, 0, 0, 0])

    def test_draw_twice_restores_screen(self):
        self.v[0], self.v[1] = 10, 10
        self.load(0xA050, 0xD015, 0xD015)
        self.cpu.step()
        before = bytes(self.screen.pixels)
        self.cpu.step()
        self.assertEqual(self.v[0xF], 0)
        self.cpu.step()
        self.assertEqual(self.v[0xF], 1)
        self.assertEqual(bytes(self.screen.pixels), before)
        self.assertFalse(any(self.screen.pixels))

    def test_draw_resets_flag(self):
        self.v[0xF] = 1
        self.run_operands(0xA050, 0xD001)
        self.assertEqual(self.v[0xF], 0)

    def test_draw_clips_at_bottom(self):
        self.v[0], self.v[1] = 0, 30
        self.run_operands(0xA050, 0xD015)
        self.assertEqual(self.screen.get_pixel(0, 30), 1)
        self.assertEqual(self.screen.get_pixel(0, 31), 1)
        self.assertEqual(self.screen.get_pixel(0, 0), 0)
        self.assertEqual(self.screen.get_pixel(0, 1), 0)

    def test_draw_wraps_at_right_edge(self):
        self.v[0], self.v[1] = 62, 0
        self.run_operands(0xA050, 0xD011)
        self.assertEqual(self.screen.get_pixel(62, 0), 1)
        self.assertEqual(self.screen.get_pixel(63, 0), 1)
        self.assertEqual(self.screen.get_pixel(0, 0), 1)
        self.assertEqual(self.screen.get_pixel(1, 0), 1)
        self.assertEqual(self.screen.get_pixel(2, 0), 0)

    def test_draw_outside_memory_changes_nothing(self):
        self.cpu.registers['index'] = len(self.memory) - 2
        self.v[0xF] = 7
        self.load(0xD015)
        with self.assertRaises(MemoryOutOfBoundsException):
            self.cpu.step()
        self.assertFalse(any(self.screen.pixels))
        self.assertEqual(self.v[0xF], 7)

    def test_clear_screen(self):
        self.run_operands(0xA050, 0xD005, 0x00E0)
        self.assertFalse(any(self.screen.pixels))

    def test_load_index_with_digit_sprite(self):
        self.v[2] = 0
        self.cpu.execute_instruction(0xF229)
        self.assertEqual(self.cpu.registers['index'], FONT_OFFSET)
        self.assertEqual(list(self.memory.read_bytes(FONT_OFFSET, 5)),
                         [0xF0, 0x90, 0x90, 0x90, 0xF0])
        self.v[2] = 0x1A
        self.cpu.execute_instruction(0xF229)
        self.assertEqual(self.cpu.registers['index'], FONT_OFFSET + 0xA * 5)


class TestKeys(CPUTestCase):
    def test_skip_if_pressed_reads_latched_state(self):
        self.v[1] = 0x5
        self.keypad.set_key(0x5, True)
        self.cpu.execute_instruction(0xE19E)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)
        self.keypad.latch()
        self.cpu.execute_instruction(0xE19E)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)

    def test_skip_if_not_pressed(self):
        self.v[1] = 0x5
        self.cpu.execute_instruction(0xE1A1)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)
        self.keypad.set_key(0x5, True)
        self.keypad.latch()
        self.cpu.execute_instruction(0xE1A1)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START + 2)

    def test_key_value_out_of_range_is_not_pressed(self):
        self.v[1] = 0x15
        self.keypad.set_key(0x5, True)
        self.keypad.latch()
        self.cpu.execute_instruction(0xE19E)
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)

    def test_wait_for_keypress(self):
        self.run_operands(0xF30A)
        self.assertEqual(self.cpu.state, STATE_AWAITING_KEY)
        self.assertEqual(self.cpu.awaiting_key, 3)
        self.assertFalse(self.cpu.running)
        self.cpu.resolve_key(0x7)
        self.assertEqual(self.v[3], 0x7)
        self.assertEqual(self.cpu.state, STATE_RUNNING)
        self.assertIsNone(self.cpu.awaiting_key)


class TestTimers(CPUTestCase):
    def test_delay_timer(self):
        self.run_operands(0x6420, 0xF415)
        self.assertEqual(self.cpu.timers['delay'], 0x20)
        self.cpu.decrement_timers()
        self.cpu.execute_instruction(0xF507)
        self.assertEqual(self.v[5], 0x1F)

    def test_sound_timer_starts_tone(self):
        self.run_operands(0x641E, 0xF418)
        self.assertEqual(self.cpu.timers['sound'], 30)
        self.assertTrue(self.sound.playing)
        self.assertEqual(self.sound.duration, 30)

    def test_zero_sound_timer_does_not_start_tone(self):
        self.run_operands(0xF418)
        self.assertFalse(self.sound.playing)

    def test_timers_stop_at_zero(self):
        self.cpu.timers['delay'] = 1
        self.cpu.timers['sound'] = 2
        for _ in range(3):
            self.cpu.decrement_timers()
        self.assertEqual(self.cpu.timers['delay'], 0)
        self.assertEqual(self.cpu.timers['sound'], 0)


class TestMemoryInstructions(CPUTestCase):
    def test_store_bcd(self):
        self.v[2] = 234
        self.cpu.registers['index'] = 0x300
        self.cpu.execute_instruction(0xF233)
        self.assertEqual(list(self.memory.read_bytes(0x300, 3)), [2, 3, 4])

    def test_store_bcd_small_value(self):
        self.v[2] = 7
        self.cpu.registers['index'] = 0x300
        self.cpu.execute_instruction(0xF233)
        self.assertEqual(list(self.memory.read_bytes(0x300, 3)), [0, 0, 7])

    def test_store_and_load_registers(self):
        values = [0x11, 0x22, 0x33, 0x44, 0x55, 0x66]
        self.v[:6] = values
        self.v[6] = 0x77
        self.cpu.registers['index'] = 0x400
        self.cpu.execute_instruction(0xF555)
        self.assertEqual(list(self.memory.read_bytes(0x400, 7)), values + [0])
        self.assertEqual(self.cpu.registers['index'], 0x400)

        self.v[:7] = [0] * 7
        self.cpu.execute_instruction(0xF565)
        self.assertEqual(self.v[:6], values)
        self.assertEqual(self.v[6], 0)
        self.assertEqual(self.cpu.registers['index'], 0x400)

    def test_store_registers_past_end_writes_nothing(self):
        self.v[:6] = [1, 2, 3, 4, 5, 6]
        self.cpu.registers['index'] = len(self.memory) - 3
        self.load(0xF555)
        with self.assertRaises(MemoryOutOfBoundsException):
            self.cpu.step()
        self.assertEqual(list(self.memory.read_bytes(len(self.memory) - 3, 3)), [0, 0, 0])
        self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)


class TestUnknownOpCodes(CPUTestCase):
    def test_unknown_op_codes(self):
        for operand in (0x0123, 0x00E1, 0x8008, 0x800F, 0xE19F, 0xF0FF, 0xF030):
            self.cpu.registers['pc'] = PROGRAM_COUNTER_START
            self.load(operand)
            with self.assertRaises(UnknownOpCodeException) as context:
                self.cpu.step()
            self.assertEqual(context.exception.op_code, operand)
            self.assertEqual(context.exception.address, PROGRAM_COUNTER_START)
            self.assertEqual(self.cpu.registers['pc'], PROGRAM_COUNTER_START)


if __name__ == '__main__':
    unittest.main()
