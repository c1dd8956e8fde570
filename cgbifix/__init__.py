"""
# cgbifix: repair of iOS optimized PNG files.

The images bundled in an iOS application are "optimized" by Xcode in a way
that makes them unreadable outside the Apple ecosystem (see the CgBI
chunk). This package rebuilds them as standard PNG files.

The binary format is described declaratively: a Chunk is a sequence of fields
declared as class attributes, and two main operations are defined for it

 1. unpack(): reading the binary data from a stream and building a
    high-level representation of that.

 2. pack(): encode the high-level representation into binary data; the
    values derived from other fields (lengths, checksums) are recomputed
    before encoding, never trusted.

The repair itself is cgbifix.images.png.cgbi.repair().
"""
