#!/usr/bin/env python3
"""
Jog Demo - drives the default six-axis arm through the command interface.
Joints are in degrees, positions in millimeters.
"""

import logging

from arm_kinematics import ArmCommandInterface, MotionState, load_config

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_until_idle(interface, dt=0.02, max_ticks=2000):
    """Tick the motion director until it stops tracking."""
    for tick in range(max_ticks):
        if interface.update(dt) is MotionState.IDLE:
            return tick
    return max_ticks


def demo_jog():
    """Demonstrate joint moves, cartesian moves and reports."""
    print("\n" + "="*60)
    print("ARM JOG DEMO")
    print("Uses degrees for joints and millimeters for positions")
    print("="*60)

    interface = ArmCommandInterface.from_config(load_config())
    interface.add_listener(lambda message: print(f"  <- {message}"))

    def send(command):
        print(f"  -> {command}")
        return interface.send(command)

    # ==========================================================================
    # 1. Joint moves
    # ==========================================================================
    print("\n1. Joint moves (G0)")
    print("-" * 50)
    send("fk")
    send("G0 X10 Y-60 Z60 U20 V40 W10")
    send("fk")

    # ==========================================================================
    # 2. Cartesian moves
    # ==========================================================================
    print("\n2. Cartesian moves (G1)")
    print("-" * 50)
    send("ik")
    pose = interface.get_end_effector_cartesian()
    send(f"G1 X{pose[0] + 5:.3f} Z{pose[2] - 5:.3f}")
    ticks = run_until_idle(interface)
    print(f"  Settled after {ticks} ticks")
    send("ik")

    # ==========================================================================
    # 3. Reports
    # ==========================================================================
    print("\n3. Reports")
    print("-" * 50)
    send("M114")
    send("aj")

    # ==========================================================================
    # 4. Errors
    # ==========================================================================
    print("\n4. Errors")
    print("-" * 50)
    send("G0 Xabc")
    send("G7")
    send("G28")

    print("\n" + "="*60)
    print("DEMO COMPLETED")
    print("="*60)


if __name__ == "__main__":
    demo_jog()
