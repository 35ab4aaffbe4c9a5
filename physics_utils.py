# physics_utils.py

import math
import numpy as np

class PhysicsError(Exception):
    """Custom exception for physics-related programmer errors, such as malformed state vectors."""
    pass

def safe_divide(numerator, denominator, epsilon=1e-12, default_on_zero_denom=0.0):
    """
    Safely divides two numbers, handling potential division by zero.

    Args:
        numerator (float or np.ndarray): The number(s) to be divided.
        denominator (float or np.ndarray): The number(s) to divide by.
        epsilon (float): Threshold below which the denominator is considered zero.
        default_on_zero_denom (float): Value to return where the denominator is effectively zero.

    Returns:
        float or np.ndarray: The result of the division, or default_on_zero_denom where the
                             denominator is near zero.
    """
    if isinstance(denominator, np.ndarray) or isinstance(numerator, np.ndarray):
        numerator, denominator = np.broadcast_arrays(np.asarray(numerator, dtype=np.float64),
                                                     np.asarray(denominator, dtype=np.float64))
        is_zero = np.abs(denominator) < epsilon
        result = np.full(denominator.shape, default_on_zero_denom, dtype=np.float64)
        np.divide(numerator, denominator, out=result, where=~is_zero)
        return result
    if abs(denominator) < epsilon:
        return default_on_zero_denom
    return numerator / denominator

def as_vector3(vector, name="vector"):
    """
    Converts input to a float64 array whose last axis has length 3.

    Raises:
        PhysicsError: If the input cannot be interpreted as one or more 3-vectors.
    """
    arr = np.asarray(vector, dtype=np.float64)
    if arr.ndim == 0 or arr.shape[-1] != 3:
        raise PhysicsError(f"{name} must have a trailing dimension of 3, got shape {arr.shape}.")
    return arr

def normalize_vector(vector, epsilon=1e-12):
    """
    Normalizes a vector (or each row of an (N, 3) array) to unit length.

    Args:
        vector (np.ndarray): The vector(s) to normalize.
        epsilon (float): Threshold below which a magnitude is considered zero.

    Returns:
        np.ndarray: The normalized vector(s); vectors with a magnitude below
                    epsilon come back as zero vectors.
    """
    arr = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(arr, axis=-1, keepdims=True)
    is_zero = norm < epsilon
    out = np.zeros_like(arr)
    np.divide(arr, norm, out=out, where=~is_zero)
    return out

def orthonormal_basis(axis):
    """
    Builds a right-handed frame (x_axis, y_axis, z_axis) with z_axis along `axis`.

    The helper vector is the x unit vector unless `axis` is nearly parallel to it,
    in which case the y unit vector is used.
    """
    z_axis = normalize_vector(axis)
    helper = np.array([1.0, 0.0, 0.0]) if abs(z_axis[0]) < 0.99 else np.array([0.0, 1.0, 0.0])
    x_axis = normalize_vector(np.cross(helper, z_axis))
    y_axis = normalize_vector(np.cross(z_axis, x_axis))
    return x_axis, y_axis, z_axis

def rotation_x(angle_rad):
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    return np.array([[1.0, 0.0, 0.0],
                     [0.0, c, -s],
                     [0.0, s, c]])

def rotation_z(angle_rad):
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    return np.array([[c, -s, 0.0],
                     [s, c, 0.0],
                     [0.0, 0.0, 1.0]])

def ecliptic_to_equatorial(vectors, obliquity_deg):
    """Rotates heliocentric-ecliptic vector(s) about the x axis into the equatorial frame."""
    return np.asarray(vectors, dtype=np.float64) @ rotation_x(math.radians(obliquity_deg)).T

def finite_or_default(value, default):
    """Returns `value` as a float, or `default` if it is missing, non-numeric or non-finite."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default
