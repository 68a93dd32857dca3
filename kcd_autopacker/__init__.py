"""KCD AutoPacker: keeps unpacked mod folders in sync with their .pak archives.

Watches a Kingdom Come ``Mods`` folder for changes inside ``*.unpacked``
directories and rebuilds the sibling ``.pak`` archive whenever the game
is not holding it open.  Can also bundle mods into timestamped release zips.
"""

__version__ = "1.0.0"
__app_name__ = "KCD AutoPacker"
