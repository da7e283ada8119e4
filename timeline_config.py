"""
Configuration file for the Chess Video Timeline Compiler
Tune per-variant timing here; every call site reads the same numbers.
"""

# =============================================================================
# VIDEO CONFIGURATION
# =============================================================================

VIDEO_SETTINGS = {
    "width": 1920,
    "height": 1080,
    "fps": 30,
    "aspect_ratio": "16:9"  # Landscape keeps YouTube chapters available
}

# =============================================================================
# TIMELINE POLICIES
# =============================================================================

# Seconds for each piece of the timeline, per composition variant.
# "seconds_per_move" is the time a normal move stays on screen.
TIMELINE_POLICIES = {
    "walkthrough": {
        "seconds_per_move": 1.0,
        "intro_seconds": 3.0,
        "result_seconds": 0.0,      # No result card
        "outro_seconds": 3.0,
        "fallback_seconds": 60.0,   # Used when the PGN can't be parsed
    },
    "annotated": {
        "seconds_per_move": 1.0,
        "annotation_pause_seconds": 4.0,
        "intro_seconds": 3.0,
        "result_seconds": 0.0,
        "outro_seconds": 3.0,
        "fallback_seconds": 90.0,
    },
    "highlights": {
        "seconds_per_move": 0.5,
        "critical_moment_seconds": 5.0,
        "intro_seconds": 3.0,
        "result_seconds": 4.0,
        "outro_seconds": 3.0,
        "fallback_seconds": 60.0,
    },
    "puzzle": {
        "seconds_per_move": 1.0,
        "puzzle_pause_seconds": 1.0,
        "puzzle_question_seconds": 1.0,
        "puzzle_thinking_seconds": 4.0,
        "puzzle_reveal_seconds": 2.0,
        "max_puzzles": 4,
        "intro_seconds": 3.0,
        "result_seconds": 4.0,
        "outro_seconds": 3.0,
        "fallback_seconds": 90.0,
    },
}

# =============================================================================
# OVERLAY ANIMATION
# =============================================================================

OVERLAY_SETTINGS = {
    "fade_seconds": 0.3,     # Fade in/out window for overlays
    "emphasis_peak": 1.05,   # Board zoom on critical moments
}

# =============================================================================
# CRITICAL MOMENT DETECTION
# =============================================================================

CRITICAL_MOMENT_SETTINGS = {
    "threshold_cp": 200,     # Eval swing (centipawns) that counts as critical
    "max_moments": 5,        # Keep only the biggest swings
}

# =============================================================================
# YOUTUBE CHAPTERS
# =============================================================================

CHAPTER_SETTINGS = {
    "min_spacing_seconds": 15,   # YouTube requires 15s+ per chapter
    "min_chapter_count": 3,      # YouTube ignores fewer than 3 chapters
    "annotation_title_chars": 40,
    "max_title_length": 100,
    "opening_cut": 0.33,         # Fraction of plies in the opening chapter
    "middlegame_cut": 0.75,
}

# =============================================================================
# RENDER FARM
# =============================================================================

RENDER_SETTINGS = {
    "frames_per_worker": 100,
}

# Evaluation bar saturates at +/- this many centipawns
EVAL_BAR_SETTINGS = {
    "max_eval_cp": 1000,
}
