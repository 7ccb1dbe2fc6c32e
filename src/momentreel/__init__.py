"""momentreel — turn a dual-camera moments export into photos or a time-lapse.

Merge posts and memories into one ordered list of capture pairs, composite
each pair with a picture-in-picture inset placed where it hides the least,
and either write the results as JPEG files or stream them into an mp4.
"""
