Q96_RESOLUTION = 96
Q96 = 1 << Q96_RESOLUTION

# V3 pool fees are expressed in pips, one hundredth of a basis point
FEE_DENOMINATOR = 1_000_000
