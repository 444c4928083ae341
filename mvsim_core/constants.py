"""
Simulation Constants
====================
Default values for the shape reducer and the tire friction model.
Units are SI (meters, seconds, kilograms, radians) unless otherwise specified.
"""

from __future__ import annotations
import math


# =============================================================================
# Core Physics
# =============================================================================
GRAVITY = 9.81                          # Gravity magnitude in m/s^2
DT = 0.005                              # Default simulation timestep (200 Hz)


# =============================================================================
# 2.5D Shape Reduction
# =============================================================================
DEFAULT_GRID_CELLS = 100                # Cells along the bounding box diagonal
GRID_MARGIN_CELLS = 1.5                 # Free border around the shape, in cells
EDGE_STEP_FRACTION = 0.5                # Triangle edge sampling step / resolution

# Box2D b2_maxPolygonVertices: largest convex polygon the 2D engine accepts
MAX_POLYGON_VERTICES = 8
MIN_POLYGON_VERTICES = 4                # Smallest target the pruning supports


# =============================================================================
# Wheel Geometry Defaults
# =============================================================================
WHEEL_DEFAULT_X = 0.0
WHEEL_DEFAULT_Y = -0.5
WHEEL_DEFAULT_YAW = 0.0
WHEEL_DEFAULT_DIAMETER = 0.4
WHEEL_DEFAULT_WIDTH = 0.2
WHEEL_DEFAULT_MASS = 2.0


# =============================================================================
# Ellipse Curve Friction Model
# =============================================================================
FRICTION_C_S = 7.5                      # Longitudinal stiffness coefficient
FRICTION_C_ALPHA = 8.5                  # Lateral (cornering) coefficient
FRICTION_SLIP_SAT = 0.1                 # Slip ratio at which Fx saturates
FRICTION_SIDESLIP_SAT = 5.0 * math.pi / 180.0   # Sideslip at which Fy saturates
FRICTION_C_S_ALPHA = 0.5                # Sideslip reduction of longitudinal force
FRICTION_C_ALPHA_S = 0.5                # Slip reduction of lateral force
CG_HEIGHT = 0.40                        # Center of gravity height (m)
SIDESLIP_MIN_SPEED = 1e-6               # Contact speed (m/s) below which sideslip is 0

NUM_WHEELS = 4
