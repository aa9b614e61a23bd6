import numpy


class Block(object):
    name = None
    solid = True
    # Debug preview color (r, g, b).
    color = (255, 255, 255)

class Air(Block):
    name = 'Air'
    solid = False
    color = (0, 0, 0)

class Magma(Block):
    name = 'Magma'
    color = (200, 60, 20)

class Bedrock(Block):
    name = 'Bedrock'
    color = (40, 40, 40)

class Stone(Block):
    name = 'Stone'
    color = (120, 120, 120)

class Clay(Block):
    name = 'Clay'
    color = (160, 110, 90)

class Dirt(Block):
    name = 'Dirt'
    color = (110, 80, 50)

class Grass(Block):
    name = 'Grass'
    color = (50, 150, 70)

class TreeTrunk(Block):
    name = 'Tree Trunk'
    color = (90, 60, 30)

class TreeLeaf(Block):
    name = 'Tree Leaf'
    color = (40, 110, 40)

# Explicit ordering keeps block IDs stable; air is always 0 so fresh buffers are empty.
BLOCKS = [
    Air,
    Magma,
    Bedrock,
    Stone,
    Clay,
    Dirt,
    Grass,
    TreeTrunk,
    TreeLeaf,
]
BLOCK_ID = {}
for i, x in enumerate(BLOCKS):
    BLOCK_ID[x.name] = i
BLOCK_SOLID = numpy.array([x.solid for x in BLOCKS], dtype=bool)
BLOCK_COLORS = numpy.array([x.color for x in BLOCKS], dtype=numpy.uint8)

AIR = BLOCK_ID['Air']
MAGMA = BLOCK_ID['Magma']
BEDROCK = BLOCK_ID['Bedrock']
STONE = BLOCK_ID['Stone']
CLAY = BLOCK_ID['Clay']
DIRT = BLOCK_ID['Dirt']
GRASS = BLOCK_ID['Grass']
TREE_TRUNK = BLOCK_ID['Tree Trunk']
TREE_LEAF = BLOCK_ID['Tree Leaf']
