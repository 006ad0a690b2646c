# BlinkMe! core: GPIO ports, blink controllers and their registry

__version__ = '0.1.0'
