import random
from time import sleep


def random_in_range(min: float, max: float):
    range = max - min
    return range * random.random() + min


def sleep_random_range(min: float, max: float):
    """ sleeps for a random number of seconds between min and max, used to pace requests """
    time = random_in_range(min, max)
    if time > 0.0001:
        sleep(time)
